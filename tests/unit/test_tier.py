import pytest

from coachgate.constants.tiers import TIER_ORDER
from coachgate.models.errors import UnknownTierError
from coachgate.models.tier import Tier, parse_optional_tier, tier_rank


def test_ranks_follow_tier_order():
    assert [Tier.parse(label).rank for label in TIER_ORDER] == [1, 2, 3]
    assert Tier.BASIC.rank < Tier.PREMIUM.rank < Tier.ELITE.rank


def test_parse_normalizes_case_and_whitespace():
    assert Tier.parse(" Premium ") == Tier.PREMIUM
    assert Tier.parse("ELITE") == Tier.ELITE
    assert Tier.parse(Tier.BASIC) is Tier.BASIC


def test_legacy_pro_label_maps_to_premium():
    assert Tier.parse("pro") == Tier.PREMIUM
    assert tier_rank("Pro") == 2


@pytest.mark.parametrize("label", ["ultra", "", "gold ", 3, None])
def test_unknown_labels_raise(label):
    with pytest.raises(UnknownTierError) as exc_info:
        Tier.parse(label)
    assert exc_info.value.label == label


def test_optional_tier_treats_blank_as_no_requirement():
    assert parse_optional_tier(None) is None
    assert parse_optional_tier("  ") is None
    assert parse_optional_tier("basic") == Tier.BASIC
    with pytest.raises(UnknownTierError):
        parse_optional_tier("ultra")
