import pytest

from mis_classifier.heads import (
    DEFAULT_TAXONOMY,
    Channel,
    Head,
    HeadType,
    Taxonomy,
)


def test_heads_are_declared_in_tier_order() -> None:
    labels = [h.label for h in Head]
    assert labels[0] == "A. Revenue"
    assert labels[4] == "E. COGM"
    assert labels[-1] == "Z. Ignore (Non-P&L)"
    assert len(labels) == 12


def test_from_label_resolves_and_rejects_unknown_labels() -> None:
    assert Head.from_label(" E. COGM ") is Head.COGM
    assert Head.coerce(Head.TAXES) is Head.TAXES
    with pytest.raises(ValueError):
        Head.from_label("E. Cogm")


def test_default_taxonomy_types_and_subheads() -> None:
    assert DEFAULT_TAXONOMY.type_of(Head.REVENUE) is HeadType.REVENUE
    assert DEFAULT_TAXONOMY.type_of("D. Taxes (GST)") is HeadType.CALCULATED
    assert DEFAULT_TAXONOMY.has_subhead(Head.COGM, "Factory Rent")
    assert not DEFAULT_TAXONOMY.has_subhead(Head.COGM, "Amazon Fees")
    assert list(DEFAULT_TAXONOMY) == list(Head)


def test_validate_rejects_subhead_outside_head() -> None:
    assert DEFAULT_TAXONOMY.validate("G. Sales & Marketing", "Google Ads") is (
        Head.SALES_MARKETING
    )
    with pytest.raises(ValueError):
        DEFAULT_TAXONOMY.validate(Head.SALES_MARKETING, "Factory Rent")


def test_add_subhead_returns_new_taxonomy() -> None:
    extended = DEFAULT_TAXONOMY.add_subhead(Head.PLATFORM_COSTS, "Zoho")

    assert extended.subheads_for(Head.PLATFORM_COSTS)[-1] == "Zoho"
    assert not DEFAULT_TAXONOMY.has_subhead(Head.PLATFORM_COSTS, "Zoho")
    # adding an existing subhead is a no-op
    assert extended.add_subhead(Head.PLATFORM_COSTS, "Zoho") is extended
    with pytest.raises(ValueError):
        extended.add_subhead(Head.PLATFORM_COSTS, "  ")


def test_taxonomy_orders_heads_and_fills_missing_ones() -> None:
    from mis_classifier.heads import HeadConfig

    taxonomy = Taxonomy(
        {
            Head.IGNORE: HeadConfig(("TDS",), HeadType.IGNORE),
            Head.REVENUE: HeadConfig(("Amazon",), HeadType.REVENUE),
        }
    )
    assert list(taxonomy)[0] is Head.REVENUE
    assert taxonomy.subheads_for(Head.COGM) == ()
    assert taxonomy.type_of(Head.COGM) is HeadType.DEBIT


def test_taxonomy_dict_round_trip() -> None:
    data = DEFAULT_TAXONOMY.to_dict()
    assert data["E. COGM"]["type"] == "debit"
    assert Taxonomy.from_dict(data) == DEFAULT_TAXONOMY


@pytest.mark.parametrize(
    "channel, revenue, returns",
    [
        (Channel.WEBSITE, "Website/D2C", "Website Returns"),
        (Channel.AMAZON, "Amazon", "Amazon Returns"),
        (Channel.BLINKIT, "Blinkit", "Blinkit Returns"),
        (Channel.OFFLINE_OEM, "Offline/OEM", "Offline Returns"),
    ],
)
def test_channel_subheads_exist_in_default_taxonomy(channel, revenue, returns) -> None:
    assert channel.revenue_subhead == revenue
    assert channel.returns_subhead == returns
    assert DEFAULT_TAXONOMY.has_subhead(Head.REVENUE, revenue)
    assert DEFAULT_TAXONOMY.has_subhead(Head.RETURNS, returns)


def test_channel_from_name_is_case_insensitive() -> None:
    assert Channel.from_name("offline/oem") is Channel.OFFLINE_OEM
    with pytest.raises(ValueError):
        Channel.from_name("Flipkart")
