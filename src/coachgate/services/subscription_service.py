"""
Subscription Service for coach memberships

Resolves the caller's active subscription at a provider and drives the
subscription lifecycle (registration, activation, plan change, cancellation).
Rows are never deleted, only status-transitioned.
"""

import uuid
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError
from typing import Any, Dict, List, Optional, Tuple
from aws_lambda_powertools import Logger

from coachgate.models.errors import (
    FetchError,
    PersistenceError,
    ResolutionError,
    SubscriptionConflictError,
    SubscriptionNotFoundError,
    SubscriptionStateError,
)
from coachgate.models.membership import (
    Package,
    Subscription,
    SubscriptionStatus,
    caller_provider_key,
    utc_now,
)
from coachgate.models.tier import Tier
from coachgate.services.aws import get_ddb_table
from coachgate.services.provider_service import ProviderService

logger = Logger()

CALLER_PROVIDER_INDEX = "CallerProviderIndex"


def _subscription_to_item(subscription: Subscription) -> Dict[str, Any]:
    item = subscription.model_dump(mode="json", exclude_none=True)
    item["caller_provider"] = subscription.caller_provider
    return item


class SubscriptionService:
    """Service for resolving and managing provider subscriptions"""

    def __init__(self, table_name: str, provider_service: Optional[ProviderService] = None):
        """
        Initialize subscription service

        Args:
            table_name: DynamoDB table name for subscriptions
            provider_service: Used to look up the tier of package-based subscriptions
        """
        self.table_name = table_name
        self.provider_service = provider_service

    @property
    def table(self):
        return get_ddb_table(self.table_name)

    def _query_caller_provider(self, caller_id: str, provider_id: str) -> List[Dict[str, Any]]:
        """
        Return every row of the pair, newest first, following pagination.

        Status is not filtered in the store: stored spellings vary ("Active",
        "canceled") and only the model normalizes them.
        """
        rows: List[Dict[str, Any]] = []
        kwargs: Dict[str, Any] = {
            "IndexName": CALLER_PROVIDER_INDEX,
            "KeyConditionExpression": Key("caller_provider").eq(
                caller_provider_key(caller_id, provider_id)
            ),
            "ScanIndexForward": False,
        }
        while True:
            response = self.table.query(**kwargs)
            rows.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return rows
            kwargs["ExclusiveStartKey"] = last_key

    def _row_to_subscription(self, row: Dict[str, Any]) -> Subscription:
        """
        Build a Subscription from a stored row.

        Rows written by the package checkout flow only carry a package_id;
        their tier is the package's tier.
        """
        if not row.get("tier"):
            package_id = row.get("package_id")
            package = None
            if package_id and self.provider_service:
                package = self.provider_service.get_package(package_id)
            if package is None:
                raise ValueError(
                    f"subscription {row.get('subscription_id')} has no tier and no resolvable package"
                )
            row = {**row, "tier": package.tier}
        return Subscription(**row)

    def _rows_to_subscriptions(
        self, caller_id: str, provider_id: str, rows: List[Dict[str, Any]]
    ) -> List[Subscription]:
        try:
            return [self._row_to_subscription(row) for row in rows]
        except FetchError as e:
            raise ResolutionError(caller_id, provider_id, e.reason) from e
        except (ValidationError, ValueError) as e:
            logger.error(f"Malformed subscription row for {caller_id} at {provider_id}: {str(e)}")
            raise ResolutionError(caller_id, provider_id, "malformed subscription row") from e

    def resolve_active_subscription(self, caller_id: str, provider_id: str) -> Optional[Subscription]:
        """
        Find the caller's active subscription at a provider.

        Args:
            caller_id: Authenticated caller identity
            provider_id: Provider whose content is being viewed

        Returns:
            Subscription or None if the caller has no active subscription

        Raises:
            ResolutionError: If the store cannot answer or a row is unusable
            UnknownTierError: If a row carries a tier outside the registry
        """
        if not caller_id or not provider_id:
            raise ValueError("caller_id and provider_id are required")

        try:
            rows = self._query_caller_provider(caller_id, provider_id)
        except ClientError as e:
            logger.error(
                f"Error querying subscriptions of {caller_id} at {provider_id}: {e.response['Error']['Message']}"
            )
            raise ResolutionError(caller_id, provider_id, e.response["Error"]["Code"]) from e
        except BotoCoreError as e:
            logger.error(f"AWS connection error: {str(e)}")
            raise ResolutionError(caller_id, provider_id, str(e)) from e

        subscriptions = self._rows_to_subscriptions(caller_id, provider_id, rows)

        active = [s for s in subscriptions if s.is_active]
        if not active:
            logger.info(f"No active subscription for {caller_id} at {provider_id}")
            return None

        active.sort(key=lambda s: s.created_at, reverse=True)
        if len(active) > 1:
            logger.warning(
                f"{len(active)} active subscriptions for {caller_id} at {provider_id}, "
                f"using most recent {active[0].subscription_id}",
                extra={"subscription_ids": [s.subscription_id for s in active]},
            )
        return active[0]

    def _load(self, subscription_id: str) -> Tuple[Subscription, str]:
        """Read a subscription together with its status exactly as stored."""
        try:
            response = self.table.get_item(Key={"subscription_id": subscription_id})
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error getting subscription {subscription_id}: {str(e)}")
            raise PersistenceError(f"Failed to read subscription {subscription_id}") from e

        item = response.get("Item")
        if not item:
            raise SubscriptionNotFoundError(subscription_id)
        try:
            subscription = self._row_to_subscription(item)
        except (ValidationError, ValueError) as e:
            logger.error(f"Malformed subscription row {subscription_id}: {str(e)}")
            raise PersistenceError(f"Subscription {subscription_id} is stored in an unreadable form") from e
        return subscription, item.get("status")

    def get_subscription(self, subscription_id: str) -> Subscription:
        """
        Get subscription by id

        Raises:
            SubscriptionNotFoundError: If no row exists
            PersistenceError: If the store cannot be read or the row is malformed
        """
        subscription, _ = self._load(subscription_id)
        return subscription

    def _package_for(self, provider_id: str, package_id: str) -> Package:
        if self.provider_service is None:
            raise ValueError("Package subscriptions need a provider service")
        package = self.provider_service.get_package(package_id)
        if package is None:
            raise ValueError(f"Unknown package {package_id}")
        if package.provider_id != provider_id:
            raise ValueError(f"Package {package_id} does not belong to provider {provider_id}")
        return package

    def register_subscription(
        self,
        caller_id: str,
        provider_id: str,
        tier: Tier | str | None = None,
        package_id: Optional[str] = None,
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
    ) -> Subscription:
        """
        Create a subscription for the caller at a provider.

        Active registrations (demo sign-up) open a billing period right away;
        pending ones record a checkout intent that activate_subscription
        completes later.

        A package, when given, must belong to the provider and fixes the tier;
        an explicit tier has to agree with it.

        Raises:
            SubscriptionConflictError: If the caller already has an active subscription
            ValueError: If tier and package are missing, unknown or inconsistent
        """
        if status == SubscriptionStatus.CANCELLED:
            raise ValueError("Cannot register a cancelled subscription")

        if package_id:
            package = self._package_for(provider_id, package_id)
            if tier is not None and Tier.parse(tier) != package.tier:
                raise ValueError(
                    f"Tier {Tier.parse(tier).value} does not match package {package_id} ({package.tier.value})"
                )
            tier = package.tier
        elif tier is None:
            raise ValueError("A tier or a known package_id is required")

        existing = self.resolve_active_subscription(caller_id, provider_id)
        if existing:
            raise SubscriptionConflictError(
                f"Caller {caller_id} already has active subscription {existing.subscription_id} at {provider_id}"
            )

        subscription = Subscription(
            subscription_id=str(uuid.uuid4()),
            caller_id=caller_id,
            provider_id=provider_id,
            tier=tier,
            package_id=package_id,
            status=status,
        )
        if status == SubscriptionStatus.ACTIVE:
            subscription.start_period()

        try:
            self.table.put_item(
                Item=_subscription_to_item(subscription),
                ConditionExpression="attribute_not_exists(subscription_id)",
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error creating subscription for {caller_id} at {provider_id}: {str(e)}")
            raise PersistenceError("Failed to create subscription") from e

        logger.info(
            f"Created {status.value} {subscription.tier.value} subscription "
            f"{subscription.subscription_id} for {caller_id} at {provider_id}"
        )
        return subscription

    def _transition(
        self,
        subscription: Subscription,
        stored_status: str,
        action: str,
        allowed: tuple[SubscriptionStatus, ...],
        updates: Dict[str, Any],
    ) -> None:
        """Conditionally write updates if the row still holds the status we read, as stored."""
        if subscription.status not in allowed:
            raise SubscriptionStateError(subscription.subscription_id, subscription.status.value, action)

        names = {"#status": "status"}
        values: Dict[str, Any] = {":expected": stored_status}
        assignments = []
        for i, (field, value) in enumerate(updates.items()):
            names[f"#f{i}"] = field
            values[f":v{i}"] = value
            assignments.append(f"#f{i} = :v{i}")

        try:
            self.table.update_item(
                Key={"subscription_id": subscription.subscription_id},
                UpdateExpression="SET " + ", ".join(assignments),
                ConditionExpression="#status = :expected",
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise SubscriptionStateError(
                    subscription.subscription_id, "changed concurrently", action
                ) from e
            logger.error(f"Error updating subscription {subscription.subscription_id}: {str(e)}")
            raise PersistenceError(f"Failed to {action} subscription") from e
        except BotoCoreError as e:
            logger.error(f"AWS connection error: {str(e)}")
            raise PersistenceError(f"Failed to {action} subscription") from e

    def activate_subscription(self, subscription_id: str) -> Subscription:
        """Turn a pending checkout intent into an active subscription."""
        subscription, stored_status = self._load(subscription_id)
        if subscription.status == SubscriptionStatus.PENDING:
            existing = self.resolve_active_subscription(subscription.caller_id, subscription.provider_id)
            if existing:
                raise SubscriptionConflictError(
                    f"Caller {subscription.caller_id} already has active subscription {existing.subscription_id}"
                )

        now = utc_now()
        candidate = subscription.model_copy()
        candidate.start_period(now)
        self._transition(
            subscription,
            stored_status,
            "activate",
            (SubscriptionStatus.PENDING,),
            {
                "status": SubscriptionStatus.ACTIVE.value,
                "current_period_start": candidate.current_period_start.isoformat(),
                "current_period_end": candidate.current_period_end.isoformat(),
                "updated_at": now.isoformat(),
            },
        )
        candidate.status = SubscriptionStatus.ACTIVE
        logger.info(f"Activated subscription {subscription_id}")
        return candidate

    def change_tier(self, subscription_id: str, new_tier: Tier | str) -> Subscription:
        """
        Move an active subscription to another tier.

        Raises:
            SubscriptionConflictError: If the subscription already has that tier
            SubscriptionStateError: If the subscription is not active
        """
        tier = Tier.parse(new_tier)
        subscription, stored_status = self._load(subscription_id)
        if subscription.is_active and subscription.tier == tier:
            raise SubscriptionConflictError(f"Subscription {subscription_id} is already {tier.value}")

        now = utc_now()
        self._transition(
            subscription,
            stored_status,
            "change tier of",
            (SubscriptionStatus.ACTIVE,),
            {"tier": tier.value, "updated_at": now.isoformat()},
        )
        logger.info(f"Changed subscription {subscription_id} from {subscription.tier.value} to {tier.value}")
        return subscription.model_copy(update={"tier": tier, "updated_at": now})

    def cancel_subscription(self, subscription_id: str) -> Subscription:
        """Cancel an active or pending subscription. The row is kept."""
        subscription, stored_status = self._load(subscription_id)
        now = utc_now()
        self._transition(
            subscription,
            stored_status,
            "cancel",
            (SubscriptionStatus.ACTIVE, SubscriptionStatus.PENDING),
            {"status": SubscriptionStatus.CANCELLED.value, "updated_at": now.isoformat()},
        )
        logger.info(f"Cancelled subscription {subscription_id}")
        return subscription.model_copy(
            update={"status": SubscriptionStatus.CANCELLED, "updated_at": now}
        )

    def list_subscriptions(self, caller_id: str, provider_id: str) -> List[Subscription]:
        """All subscriptions of the pair regardless of status, newest first."""
        try:
            rows = self._query_caller_provider(caller_id, provider_id)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error listing subscriptions of {caller_id} at {provider_id}: {str(e)}")
            raise ResolutionError(caller_id, provider_id, str(e)) from e

        subscriptions = self._rows_to_subscriptions(caller_id, provider_id, rows)
        subscriptions.sort(key=lambda s: s.created_at, reverse=True)
        return subscriptions
