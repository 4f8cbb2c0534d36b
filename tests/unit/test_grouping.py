"""Tests for meta-session grouping."""

from datetime import datetime, timedelta

from nocturne.reconcile.grouping import MetaSession, group_batches
from tests.helpers.builders import span_batch

T0 = datetime(2024, 1, 1, 22, 0)


def at(minutes: float) -> datetime:
    return T0 + timedelta(minutes=minutes)


class TestGroupBatches:
    """Test the left fold over sorted batches."""

    def test_empty_input(self):
        assert group_batches([]) == []

    def test_gap_within_merge_gap_joins_group(self):
        first = span_batch(at(0), at(60), source="first")
        second = span_batch(at(90), at(150), source="second")

        groups = group_batches([first, second])

        assert len(groups) == 1
        assert groups[0].start_time == at(0)
        assert groups[0].end_time == at(150)
        assert [b.source for b in groups[0].items] == ["first", "second"]

    def test_gap_of_exactly_merge_gap_joins_group(self):
        groups = group_batches([span_batch(at(0), at(60)), span_batch(at(120), at(180))])
        assert len(groups) == 1

    def test_gap_beyond_merge_gap_starts_new_group(self):
        groups = group_batches([span_batch(at(0), at(60)), span_batch(at(121), at(180))])

        assert len(groups) == 2
        assert groups[0].end_time == at(60)
        assert groups[1].start_time == at(121)

    def test_unsorted_input_is_sorted_by_start(self):
        late = span_batch(at(300), at(360), source="late")
        early = span_batch(at(0), at(60), source="early")

        groups = group_batches([late, early])

        assert [g.items[0].source for g in groups] == ["early", "late"]

    def test_identical_starts_keep_input_order(self):
        a = span_batch(at(0), at(30), source="a")
        b = span_batch(at(0), at(60), source="b")

        groups = group_batches([a, b])

        assert [batch.source for batch in groups[0].items] == ["a", "b"]

    def test_contained_batch_does_not_shrink_group(self):
        outer = span_batch(at(0), at(480))
        inner = span_batch(at(60), at(120))

        groups = group_batches([outer, inner])

        assert len(groups) == 1
        assert groups[0].end_time == at(480)

    def test_custom_merge_gap(self):
        batches = [span_batch(at(0), at(60)), span_batch(at(75), at(100))]
        assert len(group_batches(batches, merge_gap=timedelta(minutes=10))) == 2
        assert len(group_batches(batches, merge_gap=timedelta(minutes=15))) == 1

    def test_groups_are_separated_by_more_than_merge_gap(self):
        batches = [
            span_batch(at(start), at(start + 30))
            for start in (0, 40, 200, 215, 600, 1000, 1020)
        ]

        groups = group_batches(batches, merge_gap=timedelta(minutes=60))

        for previous, following in zip(groups, groups[1:], strict=False):
            assert following.start_time - previous.end_time > timedelta(minutes=60)
        assert sum(len(g) for g in groups) == len(batches)


class TestMetaSession:
    """Test MetaSession bookkeeping."""

    def test_add_widens_range(self):
        meta = MetaSession.from_batch(span_batch(at(60), at(120)))
        meta.add(span_batch(at(30), at(200)))

        assert meta.start_time == at(30)
        assert meta.end_time == at(200)
        assert len(meta) == 2
