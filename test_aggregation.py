"""
Tests for report aggregation: filtering, pagination, tallies and rollups.
"""

import pytest

from aggregation import (
    Page,
    ViewState,
    category_tally,
    clamp_page,
    class_options,
    date_from,
    date_tally,
    date_to,
    equals,
    filter_records,
    latest_date,
    one_of,
    paginate,
    percentage,
    score_level_tally,
    scores_for_class,
    sort_newest_first,
    student_names,
    student_rollup,
    tally,
    tally_frame,
    total_pages,
    view_page,
)


def make_score(student_id, level, date='2024-03-05', category='Hafalan Surah Pendek'):
    return {
        'Student ID': student_id,
        'Category': category,
        'Item Name': 'Surah An-Nas',
        'Score': level,
        'Date': date,
        'Notes': '',
    }


@pytest.fixture
def students():
    return [
        {'Name': 'Ali', 'NISN': '001', 'Class': 'A'},
        {'Name': 'Budi', 'NISN': '002', 'Class': 'A'},
        {'Name': 'Citra', 'NISN': '003', 'Class': 'B'},
        {'Name': 'Dewi', 'NISN': '004', 'Class': 'B'},
    ]


# ==================== FILTERING ====================

class TestFilterRecords:

    def test_equality(self):
        scores = [make_score('001', 'BB'), make_score('002', 'MB'), make_score('001', 'BSH')]

        result = filter_records(scores, [equals('Student ID', '001')])

        assert [s['Score'] for s in result] == ['BB', 'BSH']

    def test_empty_constraints_do_not_restrict(self):
        scores = [make_score('001', 'BB'), make_score('002', 'MB')]

        assert filter_records(scores, [equals('Student ID', ''), date_from(''), date_to(None)]) == scores
        assert filter_records(scores, []) == scores

    def test_date_range_is_inclusive_on_both_bounds(self):
        scores = [make_score('001', 'BB', date='2024-03-05')]

        result = filter_records(scores, [date_from('2024-03-05'), date_to('2024-03-05')])

        assert result == scores

    def test_date_range_excludes_outside(self):
        scores = [
            make_score('001', 'BB', date='2024-03-04'),
            make_score('001', 'MB', date='2024-03-05'),
            make_score('001', 'BSH', date='2024-03-20'),
            make_score('001', 'BSB', date='2024-04-01'),
        ]

        result = filter_records(scores, [date_from('2024-03-05'), date_to('2024-03-31')])

        assert [s['Score'] for s in result] == ['MB', 'BSH']

    def test_date_range_is_a_string_comparison(self):
        # Not zero padded: lexically "2024-3-5" sorts after "2024-03-31"
        scores = [make_score('001', 'BB', date='2024-3-5')]

        assert filter_records(scores, [date_to('2024-03-31')]) == []

    def test_all_constraints_must_hold(self):
        scores = [
            make_score('001', 'BB', date='2024-03-05'),
            make_score('002', 'MB', date='2024-03-05'),
            make_score('001', 'BSH', date='2024-02-01'),
        ]

        result = filter_records(scores, [equals('Student ID', '001'), date_from('2024-03-01')])

        assert [s['Score'] for s in result] == ['BB']

    def test_membership(self):
        scores = [make_score('001', 'BB'), make_score('002', 'MB'), make_score('999', 'BSH')]

        assert len(filter_records(scores, [one_of('Student ID', ['001', '002'])])) == 2
        assert filter_records(scores, [one_of('Student ID', [])]) == []
        assert filter_records(scores, [one_of('Student ID', None)]) == scores


# ==================== PAGINATION ====================

class TestPagination:

    @pytest.mark.parametrize('length,size,expected', [
        (0, 10, 0), (1, 10, 1), (10, 10, 1), (11, 10, 2), (25, 10, 3),
    ])
    def test_total_pages(self, length, size, expected):
        assert total_pages(length, size) == expected

    def test_pages_reconstruct_the_sequence(self):
        records = [{'n': i} for i in range(23)]
        pages = total_pages(len(records), 10)

        rebuilt = []
        for number in range(1, pages + 1):
            rebuilt.extend(paginate(records, number, 10).items)

        assert pages == 3
        assert rebuilt == records

    def test_page_slice(self):
        records = [{'n': i} for i in range(23)]

        page = paginate(records, 3, 10)

        assert page == Page(items=records[20:23], page=3, total_pages=3, total_items=23)

    def test_empty_sequence_has_an_empty_first_page(self):
        page = paginate([], 1, 10)
        assert page.items == []
        assert page.total_pages == 0

    @pytest.mark.parametrize('number', [0, -1, 4])
    def test_out_of_range_page_is_rejected(self, number):
        records = [{'n': i} for i in range(23)]
        with pytest.raises(ValueError):
            paginate(records, number, 10)

    def test_clamp_page(self):
        assert clamp_page(0, 3) == 1
        assert clamp_page(5, 3) == 3
        assert clamp_page(2, 3) == 2
        assert clamp_page(4, 0) == 1

    def test_view_page_clamps_before_slicing(self):
        records = [{'n': i} for i in range(12)]

        page = view_page(records, ViewState(page=7), page_size=10)

        assert page.page == 2
        assert page.items == records[10:]


class TestViewState:

    def test_filter_change_resets_page(self):
        state = ViewState(filters={'student': '001'}, page=3)

        updated = state.update(filters={'student': '002'})

        assert updated.page == 1
        assert updated.filters == {'student': '002'}

    def test_same_filters_keep_page(self):
        state = ViewState(filters={'student': '001', 'start': ''}, page=3)

        assert state.update(filters={'student': '001', 'start': ''}).page == 3

    def test_page_change_keeps_filters(self):
        state = ViewState(filters={'class': 'A'}, page=1)

        updated = state.update(page=2)

        assert updated.page == 2
        assert updated.filters == {'class': 'A'}

    def test_filter_change_wins_over_requested_page(self):
        state = ViewState(filters={'class': 'A'}, page=2)

        assert state.update(filters={'class': 'B'}, page=5).page == 1

    def test_update_is_pure(self):
        state = ViewState(filters={'class': 'A'}, page=2)

        state.update(filters={'class': 'B'})

        assert state == ViewState(filters={'class': 'A'}, page=2)

    def test_changing_page_does_not_alter_filtered_content(self):
        scores = [make_score('001', 'BB', date=f'2024-03-{d:02d}') for d in range(1, 26)]
        state = ViewState(filters={'start': '2024-03-10'})
        constraints = [date_from(state.filters['start'])]

        before = filter_records(scores, constraints)
        state = state.update(page=2)
        after = filter_records(scores, [date_from(state.filters['start'])])

        assert before == after
        assert view_page(after, state).items == after[10:]

    def test_clamped(self):
        assert ViewState(page=9).clamped(2).page == 2
        assert ViewState(page=9).clamped(0).page == 1


# ==================== TALLIES ====================

class TestTally:

    def test_score_level_tally_example(self):
        scores = [make_score('001', level) for level in ['BSH', 'BSH', 'BB', 'MB']]

        result = {e.key: (e.count, e.percentage) for e in score_level_tally(scores)}

        assert result == {'BB': (1, 25), 'MB': (1, 25), 'BSH': (2, 50), 'BSB': (0, 0)}

    def test_score_level_tally_is_dense_and_ordered(self):
        entries = score_level_tally([])

        assert [e.key for e in entries] == ['BB', 'MB', 'BSH', 'BSB']
        assert all(e.count == 0 and e.percentage == 0 for e in entries)

    def test_unknown_levels_are_not_listed(self):
        scores = [make_score('001', 'BSB'), make_score('001', 'A+')]

        entries = score_level_tally(scores)

        assert [e.key for e in entries] == ['BB', 'MB', 'BSH', 'BSB']
        assert sum(e.count for e in entries) == 1

    def test_percentage_rounds_half_up(self):
        assert percentage(1, 8) == 13      # 12.5
        assert percentage(1, 3) == 33
        assert percentage(2, 3) == 67
        assert percentage(29, 200) == 15  # 14.5 exactly
        assert percentage(7, 200) == 4    # 3.5 exactly
        assert percentage(0, 0) == 0

    def test_category_tally_is_sparse_and_sorted_by_count(self):
        scores = [
            make_score('001', 'BB', category='Hafalan Hadist'),
            make_score('001', 'BB', category='Hafalan Surah Pendek'),
            make_score('002', 'MB', category='Hafalan Surah Pendek'),
            make_score('003', 'MB', category='Hafalan Surah Pendek'),
        ]

        entries = category_tally(scores)

        assert [(e.key, e.count, e.percentage) for e in entries] == [
            ('Hafalan Surah Pendek', 3, 75),
            ('Hafalan Hadist', 1, 25),
        ]

    def test_date_tally_is_oldest_first(self):
        scores = [
            make_score('001', 'BB', date='2024-03-07'),
            make_score('001', 'BB', date='2024-03-05'),
            make_score('002', 'BB', date='2024-03-07'),
        ]

        entries = date_tally(scores)

        assert [(e.key, e.count) for e in entries] == [('2024-03-05', 1), ('2024-03-07', 2)]

    def test_custom_key(self):
        records = [{'Class': 'A'}, {'Class': 'B'}, {'Class': 'A'}]

        entries = tally(records, lambda r: r['Class'])

        assert [(e.key, e.count) for e in entries] == [('A', 2), ('B', 1)]

    def test_tally_frame(self):
        df = tally_frame(score_level_tally([make_score('001', 'BB')]), 'Skor')

        assert list(df.columns) == ['Skor', 'Jumlah', 'Persentase']
        assert df['Jumlah'].tolist() == [1, 0, 0, 0]


# ==================== DATES ====================

class TestDates:

    def test_latest_date_compares_dates_not_strings(self):
        # Lexically "2024-3-5" > "2024-03-10", but it is the earlier day
        scores = [make_score('001', 'BB', date='2024-3-5'), make_score('001', 'MB', date='2024-03-10')]

        assert latest_date(scores) == '2024-03-10'

    def test_latest_date_without_scores(self):
        assert latest_date([]) == '-'

    def test_latest_date_skips_unparsable(self):
        scores = [make_score('001', 'BB', date='kemarin'), make_score('001', 'MB', date='2024-01-02')]

        assert latest_date(scores) == '2024-01-02'

    def test_sort_newest_first(self):
        scores = [
            make_score('001', 'BB', date='2024-01-02'),
            make_score('001', 'MB', date=''),
            make_score('001', 'BSH', date='2024-03-01'),
        ]

        assert [s['Score'] for s in sort_newest_first(scores)] == ['BSH', 'BB', 'MB']


# ==================== ROLLUP ====================

class TestStudentRollup:

    def test_rollup_example(self, students):
        scores = [make_score('001', 'BB'), make_score('001', 'BSH'), make_score('001', 'BSH')]

        ali = student_rollup(students, scores)[0]

        assert ali.name == 'Ali'
        assert ali.total == 3
        assert (ali.bb, ali.mb, ali.bsh, ali.bsb) == (1, 0, 2, 0)
        assert ali.average == '2.3'

    def test_student_without_scores(self, students):
        summaries = student_rollup(students, [])

        assert len(summaries) == len(students)
        assert all(s.total == 0 and s.average == '0' and s.latest_date == '-' for s in summaries)

    def test_average_always_has_one_decimal(self, students):
        scores = [make_score('002', 'BSB'), make_score('002', 'BSB')]

        budi = [s for s in student_rollup(students, scores) if s.nisn == '002'][0]

        assert budi.average == '4.0'

    def test_unknown_levels_count_but_do_not_average(self, students):
        scores = [make_score('001', 'A+'), make_score('001', 'A+'), make_score('002', 'A+'),
                  make_score('002', 'BSB')]

        by_nisn = {s.nisn: s for s in student_rollup(students, scores)}

        assert (by_nisn['001'].total, by_nisn['001'].average) == (2, '0')
        assert (by_nisn['002'].total, by_nisn['002'].average) == (2, '4.0')

    def test_sorted_by_total_with_stable_ties(self, students):
        scores = [
            make_score('003', 'BB'), make_score('003', 'MB'),
            make_score('004', 'BB'),
            make_score('002', 'BB'),
        ]

        order = [s.name for s in student_rollup(students, scores)]

        assert order == ['Citra', 'Budi', 'Dewi', 'Ali']

    def test_latest_date_per_student(self, students):
        scores = [
            make_score('001', 'BB', date='2024-01-10'),
            make_score('001', 'MB', date='2024-02-01'),
        ]

        ali = [s for s in student_rollup(students, scores) if s.nisn == '001'][0]

        assert ali.latest_date == '2024-02-01'

    def test_orphan_scores_are_ignored(self, students):
        summaries = student_rollup(students, [make_score('999', 'BSB')])

        assert sum(s.total for s in summaries) == 0


# ==================== JOINS ====================

class TestJoins:

    def test_class_options(self, students):
        assert class_options(students + [{'Name': 'X', 'NISN': '9', 'Class': ''}]) == ['A', 'B']

    def test_student_names(self, students):
        assert student_names(students)['003'] == 'Citra'

    def test_scores_for_class(self, students):
        scores = [make_score('001', 'BB'), make_score('003', 'MB'), make_score('999', 'BSH')]

        assert [s['Student ID'] for s in scores_for_class(scores, students, 'A')] == ['001']
        assert [s['Student ID'] for s in scores_for_class(scores, students, 'B')] == ['003']
        assert len(scores_for_class(scores, students, '')) == 3
        assert scores_for_class(scores, students, 'Z') == []
