"""
Hafalan Report Portal - Google Sheets Edition

Streamlit portal for TK IT Harvysyah memorization (hafalan) assessments.

Features:
- PIN login per portal, matched against a public spreadsheet column
- Teacher: input, edit and delete scores; class report; student summary
- Parent: assessment history of one student
- Principal: teachers, students, school-wide report and student summary

Every screen refetches its tables on each run; nothing is cached.
"""

from datetime import date

import streamlit as st
import plotly.express as px
import plotly.graph_objects as go
import pandas as pd

from config import (
    CATEGORIES,
    CURRICULUM_ITEMS,
    INPUT_TABS,
    PORTALS,
    PORTAL_COLORS,
    SCHOOL_INFO,
    SCORES,
    SCORE_COLORS,
    SCORE_LABELS,
    SCORE_LEVELS,
    STUDENTS,
    TEACHERS,
)
from load_data import (
    SheetFetchError,
    fetch_table,
    fetch_tables,
    find_user,
    hafalan_items_for,
    records_to_frame,
)
from score_service import (
    ScoreWriteError,
    ValidationError,
    add_score,
    delete_score,
    new_score,
    update_score,
)
from aggregation import (
    ViewState,
    category_tally,
    class_options,
    date_from,
    date_to,
    date_tally,
    equals,
    filter_records,
    one_of,
    score_level_tally,
    scores_for_class,
    sort_newest_first,
    student_names,
    student_rollup,
    tally_frame,
    view_page,
)

# Page configuration
st.set_page_config(
    page_title="Portal Hafalan TK IT Harvysyah",
    page_icon="📖",
    layout="wide",
    initial_sidebar_state="expanded"
)

# Custom CSS
st.markdown("""
<style>
    .portal-card {
        background-color: #f8f9fa;
        border-radius: 10px;
        padding: 20px;
        margin: 10px 0;
        box-shadow: 0 2px 4px rgba(0,0,0,0.1);
    }
    .role-badge {
        padding: 4px 12px;
        border-radius: 20px;
        font-size: 0.85em;
        font-weight: 500;
    }
</style>
""", unsafe_allow_html=True)

SCORE_COLUMNS = {
    'Date': 'Tanggal',
    'Student Name': 'Nama Siswa',
    'Category': 'Kategori',
    'Item Name': 'Item Penilaian',
    'Score': 'Skor',
    'Notes': 'Catatan',
}

TEACHER_COLUMNS = {'Name': 'Nama', 'Phone': 'Telepon', 'Class': 'Kelas'}
STUDENT_COLUMNS = {'Name': 'Nama', 'NISN': 'NISN', 'Class': 'Kelas'}

ALL_CLASSES = "Semua Kelas"


# ==================== SESSION STATE ====================

def init_session():
    if "portal" not in st.session_state:
        st.session_state.portal = "landing"
        st.session_state.nav = "landing"
        st.session_state.user = None
        st.session_state.views = {}
        st.session_state.flash = None


def select_portal(portal: str):
    """Switching portal always logs out."""
    if st.session_state.portal != portal:
        st.session_state.portal = portal
        st.session_state.user = None
        st.session_state.views = {}


def open_portal(portal: str):
    """Landing-page button callback; runs before the sidebar radio is drawn."""
    st.session_state.nav = portal


def get_view_state(view_key: str) -> ViewState:
    return st.session_state.views.get(view_key, ViewState())


def set_view_state(view_key: str, state: ViewState):
    st.session_state.views[view_key] = state


def flash(kind: str, message: str):
    st.session_state.flash = (kind, message)


def show_flash():
    if st.session_state.flash:
        kind, message = st.session_state.flash
        st.session_state.flash = None
        if kind == "success":
            st.success(message)
        else:
            st.error(message)


# ==================== AUTHENTICATION ====================

def check_login(portal: str):
    """
    Show the PIN form for a portal and return the logged-in record.
    Returns None until a matching record is found.
    """
    if st.session_state.user is not None:
        return st.session_state.user

    config = PORTALS[portal]

    col1, col2, col3 = st.columns([1, 2, 1])
    with col2:
        st.title(config['title'])
        st.markdown(f"#### {SCHOOL_INFO['Nama Sekolah']}")

        pin = st.text_input("Masukan Pin Anda", type="password", key=f"pin_{portal}")

        if st.button("Masuk", type="primary", use_container_width=True):
            if not pin.strip():
                st.error("Pin wajib diisi.")
                return None
            try:
                with st.spinner("Memverifikasi..."):
                    users = fetch_table(config['table'])
            except SheetFetchError:
                st.error("Terjadi kesalahan saat login. Silakan coba lagi.")
                return None

            user = find_user(users, config['login_field'], pin)
            if user:
                st.session_state.user = user
                st.rerun()
            else:
                st.error("Data tidak ditemukan. Silakan periksa kembali input Anda.")

    return None


# ==================== HELPER FUNCTIONS ====================

def optional_iso(value) -> str:
    """date_input value -> ISO string, '' when not set."""
    return value.isoformat() if value else ''


def with_student_names(scores: list, names: dict) -> list:
    """Add the student's name; unknown ids show the raw id."""
    return [{**s, 'Student Name': names.get(s.get('Student ID', ''), s.get('Student ID', ''))}
            for s in scores]


def score_label(record: dict, names: dict) -> str:
    student = names.get(record.get('Student ID', ''), record.get('Student ID', ''))
    return f"{record.get('Date', '')} - {student} - {record.get('Item Name', '')} ({record.get('Score', '')})"


def summary_frame(summaries: list) -> pd.DataFrame:
    return pd.DataFrame([
        {
            'Nama': s.name,
            'NISN': s.nisn,
            'Kelas': s.class_name,
            'Total Penilaian': s.total,
            'BB': s.bb,
            'MB': s.mb,
            'BSH': s.bsh,
            'BSB': s.bsb,
            'Rata-rata': s.average,
            'Terakhir Dinilai': s.latest_date,
        }
        for s in summaries
    ], columns=['Nama', 'NISN', 'Kelas', 'Total Penilaian', 'BB', 'MB', 'BSH', 'BSB',
                'Rata-rata', 'Terakhir Dinilai'])


def render_pagination(view_key: str, state: ViewState, page):
    """Previous / next controls. Changing page keeps the filters."""
    set_view_state(view_key, state.clamped(page.total_pages))
    if page.total_pages <= 1:
        return

    col1, col2, col3 = st.columns([1, 3, 1])
    with col1:
        if st.button("◀ Sebelumnya", key=f"{view_key}_prev", disabled=page.page <= 1):
            set_view_state(view_key, state.update(page=page.page - 1))
            st.rerun()
    with col2:
        st.markdown(
            f"<div style='text-align: center;'>Halaman {page.page} dari {page.total_pages} "
            f"({page.total_items} data)</div>",
            unsafe_allow_html=True
        )
    with col3:
        if st.button("Berikutnya ▶", key=f"{view_key}_next", disabled=page.page >= page.total_pages):
            set_view_state(view_key, state.update(page=page.page + 1))
            st.rerun()


# ==================== CHART FUNCTIONS ====================

def create_level_chart(records: list, title: str) -> go.Figure:
    """Bar chart of BB/MB/BSH/BSB counts (all four levels always shown)."""
    entries = score_level_tally(records)

    fig = go.Figure(go.Bar(
        x=[e.key for e in entries],
        y=[e.count for e in entries],
        marker_color=[SCORE_COLORS[e.key] for e in entries],
        text=[f"{e.count} ({e.percentage}%)" for e in entries],
        textposition='outside',
        hovertext=[SCORE_LABELS[e.key] for e in entries],
    ))

    fig.update_layout(
        title=title,
        xaxis_title="Skor",
        yaxis_title="Jumlah",
        height=350,
        showlegend=False
    )

    return fig


def create_category_chart(records: list) -> go.Figure:
    """Horizontal bar chart of assessments per category, most first."""
    entries = category_tally(records)

    fig = go.Figure(go.Bar(
        x=[e.count for e in entries],
        y=[e.key for e in entries],
        orientation='h',
        marker_color='#10b981',
        text=[f"{e.count} ({e.percentage}%)" for e in entries],
        textposition='outside'
    ))

    fig.update_layout(
        title="Penilaian per Kategori",
        xaxis_title="Jumlah",
        yaxis=dict(autorange="reversed"),
        height=max(250, len(entries) * 60),
        margin=dict(l=200)
    )

    return fig


def create_activity_chart(records: list) -> go.Figure:
    """Line chart of assessments per date."""
    df = tally_frame(date_tally(records), 'Tanggal')

    fig = px.line(df, x='Tanggal', y='Jumlah', markers=True)
    fig.update_layout(title="Aktivitas Penilaian per Tanggal", height=350)

    return fig


def render_level_charts(records: list):
    """One score-level chart per category."""
    cols = st.columns(len(CATEGORIES))
    for col, category in zip(cols, CATEGORIES):
        in_category = filter_records(records, [equals('Category', category)])
        with col:
            st.plotly_chart(create_level_chart(in_category, category), use_container_width=True)


# ==================== SHARED VIEWS ====================

def render_score_table(view_key: str, records: list, names: dict):
    """Paginated score table for an already filtered list. Returns the page shown."""
    state = get_view_state(view_key)
    page = view_page(records, state)

    if not records:
        st.info("Tidak ada data untuk filter ini.")
    else:
        st.dataframe(
            records_to_frame(with_student_names(page.items, names), SCORE_COLUMNS),
            use_container_width=True,
            hide_index=True
        )
    render_pagination(view_key, state, page)
    return page


def render_student_summary(view_key: str, students: list, scores: list, extra_filters: dict = None):
    """Per-student rollup with its own date filters and pagination."""
    col1, col2 = st.columns(2)
    with col1:
        start = st.date_input("Dari Tanggal", value=None, key=f"{view_key}_start")
    with col2:
        end = st.date_input("Sampai Tanggal", value=None, key=f"{view_key}_end")

    filters = {**(extra_filters or {}), 'start': optional_iso(start), 'end': optional_iso(end)}
    state = get_view_state(view_key).update(filters=filters)

    in_range = filter_records(scores, [date_from(filters['start']), date_to(filters['end'])])
    summaries = student_rollup(students, in_range)

    page = view_page(summaries, state)
    if summaries:
        st.dataframe(summary_frame(page.items), use_container_width=True, hide_index=True)
    else:
        st.info("Belum ada data siswa.")
    render_pagination(view_key, state, page)


# ==================== TEACHER PORTAL ====================

def render_input_form(teacher: dict, students: list, hafalan_items: list):
    st.subheader("Input Penilaian Baru")

    tab_key = st.radio(
        "Kategori",
        list(INPUT_TABS.keys()),
        format_func=lambda k: INPUT_TABS[k]['label'],
        horizontal=True,
        key="input_tab"
    )
    tab = INPUT_TABS[tab_key]
    items = hafalan_items_for(hafalan_items, tab['category'], tab['semester'])
    names = student_names(students)

    with st.form(f"input_form_{tab_key}", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            student_id = st.selectbox(
                f"Siswa (Kelas {teacher.get('Class', '')})",
                [''] + [s.get('NISN', '') for s in students],
                format_func=lambda n: f"{names[n]} ({n})" if n else "Pilih Siswa"
            )
        with col2:
            item_name = st.selectbox(
                "Nama Item Penilaian",
                [''] + [i['ItemName'] for i in items],
                format_func=lambda i: i or "Pilih Item",
                disabled=not items
            )

        level = st.radio(
            "Penilaian",
            SCORE_LEVELS,
            index=None,
            format_func=lambda v: f"{v} - {SCORE_LABELS[v]}",
            horizontal=True
        )

        col1, col2 = st.columns(2)
        with col1:
            assessed_on = st.date_input("Tanggal", value=date.today())
        with col2:
            notes = st.text_area("Catatan (opsional)")

        submitted = st.form_submit_button("Kirim Penilaian", type="primary")

    if submitted:
        score = new_score(
            student_id=student_id,
            category=tab['category'],
            item_name=item_name or '',
            score=level or '',
            date=optional_iso(assessed_on),
            notes=notes,
        )
        try:
            with st.spinner("Mengirim..."):
                result = add_score(score)
            st.success(result['message'])
        except ValidationError as e:
            st.error(str(e))
        except ScoreWriteError as e:
            st.error(f"Gagal mengirim data: {e}")


def render_edit_delete(record: dict, hafalan_items: list, names: dict):
    """Edit or delete one persisted score, then refetch on the next run."""
    record_key = record.get('Timestamp') or score_label(record, names)

    with st.expander("Ubah Penilaian", expanded=False):
        category = st.selectbox(
            "Kategori",
            CATEGORIES,
            index=CATEGORIES.index(record['Category']) if record.get('Category') in CATEGORIES else 0,
            key=f"edit_category_{record_key}"
        )
        # Changing the category narrows the items to that category
        items = [i['ItemName'] for i in hafalan_items_for(hafalan_items, category)]
        current_item = record.get('Item Name', '')
        item_options = [''] + items
        item_name = st.selectbox(
            "Nama Item Penilaian",
            item_options,
            index=item_options.index(current_item) if current_item in item_options else 0,
            format_func=lambda i: i or "Pilih Item",
            key=f"edit_item_{record_key}"
        )
        level = st.radio(
            "Penilaian",
            SCORE_LEVELS,
            index=SCORE_LEVELS.index(record['Score']) if record.get('Score') in SCORE_LEVELS else None,
            format_func=lambda v: f"{v} - {SCORE_LABELS[v]}",
            horizontal=True,
            key=f"edit_level_{record_key}"
        )
        assessed_on = st.text_input("Tanggal (YYYY-MM-DD)", value=record.get('Date', ''),
                                    key=f"edit_date_{record_key}")
        notes = st.text_area("Catatan", value=record.get('Notes', ''), key=f"edit_notes_{record_key}")

        if st.button("Simpan Perubahan", type="primary", key=f"edit_save_{record_key}"):
            edited = new_score(
                student_id=record.get('Student ID', ''),
                category=category,
                item_name=item_name or '',
                score=level or '',
                date=assessed_on.strip(),
                notes=notes,
            )
            try:
                result = update_score(edited, record.get('Timestamp', ''))
            except ValidationError as e:
                st.error(str(e))
            except ScoreWriteError as e:
                st.error(f"Gagal mengupdate data: {e}")
            else:
                flash("success", result['message'])
                st.rerun()

    with st.expander("Hapus Penilaian", expanded=False):
        st.warning(f"Hapus penilaian: {score_label(record, names)}?")
        confirmed = st.checkbox("Ya, saya yakin", key=f"delete_confirm_{record_key}")
        if st.button("Hapus", disabled=not confirmed, key=f"delete_{record_key}"):
            try:
                result = delete_score(record)
            except ScoreWriteError as e:
                st.error(f"Gagal menghapus data: {e}")
            else:
                flash("success", result['message'])
                st.rerun()


def render_teacher_report(students: list, hafalan_items: list):
    try:
        with st.spinner("Memuat data laporan..."):
            scores = fetch_table(SCORES)
    except SheetFetchError:
        st.error("Gagal memuat data laporan.")
        return

    names = student_names(students)
    class_scores = sort_newest_first(
        filter_records(scores, [one_of('Student ID', names.keys())])
    )

    if not class_scores:
        st.info("Belum ada data penilaian untuk kelas ini.")
        return

    col1, col2, col3 = st.columns(3)
    with col1:
        selected_student = st.selectbox(
            "Siswa",
            [''] + list(names.keys()),
            format_func=lambda n: names[n] if n else "Semua Siswa",
            key="teacher_report_student"
        )
    with col2:
        start = st.date_input("Dari Tanggal", value=None, key="teacher_report_start")
    with col3:
        end = st.date_input("Sampai Tanggal", value=None, key="teacher_report_end")

    filters = {
        'student': selected_student,
        'start': optional_iso(start),
        'end': optional_iso(end),
    }
    set_view_state("teacher_report", get_view_state("teacher_report").update(filters=filters))

    filtered = filter_records(class_scores, [
        equals('Student ID', filters['student']),
        date_from(filters['start']),
        date_to(filters['end']),
    ])

    page = render_score_table("teacher_report", filtered, names)

    if page.items:
        st.markdown("**Ubah / Hapus Data**")
        chosen = st.selectbox(
            "Pilih data",
            range(len(page.items)),
            format_func=lambda i: score_label(page.items[i], names),
            key="teacher_report_choice"
        )
        render_edit_delete(page.items[chosen], hafalan_items, names)

    st.divider()
    st.subheader("Grafik Penilaian")
    render_level_charts(filtered)


def render_teacher_portal(teacher: dict):
    st.header("Portal Guru")
    st.markdown(f"Selamat datang, **{teacher.get('Name', '')}** | Kelas {teacher.get('Class', '')}")
    show_flash()

    try:
        tables = fetch_tables([STUDENTS, CURRICULUM_ITEMS])
    except SheetFetchError:
        st.error("Gagal memuat data siswa. Silakan coba lagi.")
        return

    students = filter_records(tables[STUDENTS], [equals('Class', teacher.get('Class', ''))])
    hafalan_items = tables[CURRICULUM_ITEMS]

    main_tab = st.radio(
        "Menu",
        ["Input Penilaian", "Laporan", "Rekap Siswa"],
        horizontal=True,
        key="teacher_tab"
    )

    if main_tab == "Input Penilaian":
        render_input_form(teacher, students, hafalan_items)

    elif main_tab == "Laporan":
        render_teacher_report(students, hafalan_items)

    elif main_tab == "Rekap Siswa":
        try:
            scores = fetch_table(SCORES)
        except SheetFetchError:
            st.error("Gagal memuat data laporan.")
            return
        st.subheader(f"Rekap Penilaian Kelas {teacher.get('Class', '')}")
        render_student_summary("teacher_summary", students, scores)


# ==================== PARENT PORTAL ====================

def render_parent_portal(student: dict):
    st.header("Portal Orang Tua")
    st.markdown(f"Laporan Belajar untuk: **{student.get('Name', '')}**")

    try:
        with st.spinner("Memuat data penilaian..."):
            scores = fetch_table(SCORES)
    except SheetFetchError:
        st.error("Gagal memuat data penilaian.")
        return

    own = sort_newest_first(filter_records(scores, [equals('Student ID', student.get('NISN', ''))]))

    if not own:
        st.info("Belum ada data penilaian untuk siswa ini.")
        return

    summary = student_rollup([student], own)[0]
    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Total Penilaian", summary.total)
    with col2:
        st.metric("Rata-rata", summary.average)
    with col3:
        st.metric("Terakhir Dinilai", summary.latest_date)

    st.dataframe(
        records_to_frame(own, {k: v for k, v in SCORE_COLUMNS.items() if k != 'Student Name'}),
        use_container_width=True,
        hide_index=True
    )

    col1, col2 = st.columns(2)
    with col1:
        st.plotly_chart(create_level_chart(own, "Sebaran Skor"), use_container_width=True)
    with col2:
        st.plotly_chart(create_category_chart(own), use_container_width=True)


# ==================== PRINCIPAL PORTAL ====================

def render_principal_portal(principal: dict):
    st.header("Portal Kepala Sekolah: Monitoring")
    st.markdown(f"Selamat datang, **{principal.get('Name', '')}**!")

    try:
        with st.spinner("Memuat semua data..."):
            tables = fetch_tables([TEACHERS, STUDENTS, SCORES])
    except SheetFetchError:
        st.error("Gagal memuat semua data. Silakan coba lagi.")
        return

    teachers, students, scores = tables[TEACHERS], tables[STUDENTS], tables[SCORES]
    names = student_names(students)
    classes = class_options(students)

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Total Guru", len(teachers))
    with col2:
        st.metric("Total Siswa", len(students))
    with col3:
        st.metric("Total Penilaian", len(scores))

    tab = st.radio(
        "Menu",
        ["Data Guru", "Data Siswa", "Laporan", "Rekap Siswa"],
        horizontal=True,
        key="principal_tab"
    )

    if tab == "Data Guru":
        st.subheader("Data Guru")
        st.dataframe(records_to_frame(teachers, TEACHER_COLUMNS), use_container_width=True, hide_index=True)

    elif tab == "Data Siswa":
        selected_class = st.selectbox("Pilih Kelas", [ALL_CLASSES] + classes, key="roster_class")
        class_filter = '' if selected_class == ALL_CLASSES else selected_class
        state = get_view_state("roster").update(filters={'class': class_filter})

        roster = filter_records(students, [equals('Class', class_filter)])
        page = view_page(roster, state)

        st.subheader("Data Siswa")
        if roster:
            st.dataframe(records_to_frame(page.items, STUDENT_COLUMNS), use_container_width=True, hide_index=True)
        else:
            st.info("Tidak ada data")
        render_pagination("roster", state, page)

    elif tab == "Laporan":
        col1, col2, col3 = st.columns(3)
        with col1:
            selected_class = st.selectbox("Kelas", [ALL_CLASSES] + classes, key="principal_report_class")
        with col2:
            start = st.date_input("Dari Tanggal", value=None, key="principal_report_start")
        with col3:
            end = st.date_input("Sampai Tanggal", value=None, key="principal_report_end")

        filters = {
            'class': '' if selected_class == ALL_CLASSES else selected_class,
            'start': optional_iso(start),
            'end': optional_iso(end),
        }
        set_view_state("principal_report", get_view_state("principal_report").update(filters=filters))

        filtered = sort_newest_first(filter_records(
            scores_for_class(scores, students, filters['class']),
            [date_from(filters['start']), date_to(filters['end'])]
        ))

        st.subheader("Laporan Penilaian")
        render_score_table("principal_report", filtered, names)

        if filtered:
            st.divider()
            col1, col2 = st.columns(2)
            with col1:
                st.plotly_chart(create_level_chart(filtered, "Sebaran Skor"), use_container_width=True)
            with col2:
                st.plotly_chart(create_category_chart(filtered), use_container_width=True)
            st.plotly_chart(create_activity_chart(filtered), use_container_width=True)

    elif tab == "Rekap Siswa":
        selected_class = st.selectbox("Kelas", [ALL_CLASSES] + classes, key="principal_summary_class")
        class_filter = '' if selected_class == ALL_CLASSES else selected_class

        members = filter_records(students, [equals('Class', class_filter)])
        st.subheader("Rekap Penilaian Siswa")
        render_student_summary("principal_summary", members,
                               scores_for_class(scores, students, class_filter),
                               extra_filters={'class': class_filter})


# ==================== LANDING & SCHOOL INFO ====================

def render_landing():
    st.title("Portal Hafalan")
    st.markdown(f"**{SCHOOL_INFO['Nama Sekolah']}** | Laporan hafalan surah pendek, doa sehari-hari dan hadist")

    cols = st.columns(len(PORTALS))
    for col, (portal, config) in zip(cols, PORTALS.items()):
        with col:
            st.markdown(
                f"<div class='portal-card' style='border-top: 6px solid {PORTAL_COLORS[portal]};'>"
                f"<h4>{config['name']}</h4></div>",
                unsafe_allow_html=True
            )
            st.button(f"Buka {config['name']}", key=f"open_{portal}", use_container_width=True,
                      on_click=open_portal, args=(portal,))


def render_school_info():
    with st.sidebar.expander("Info Sekolah"):
        for label, value in SCHOOL_INFO.items():
            st.markdown(f"**{label}**: {value}")


# ==================== MAIN ====================

PORTAL_RENDERERS = {
    "teacher": render_teacher_portal,
    "parent": render_parent_portal,
    "principal": render_principal_portal,
}


def main():
    init_session()

    # Sidebar navigation
    st.sidebar.title("Navigasi")
    choices = ["landing"] + list(PORTALS.keys())
    selection = st.sidebar.radio(
        "Pilih Portal:",
        choices,
        key="nav",
        format_func=lambda p: "Beranda" if p == "landing" else PORTALS[p]['name']
    )
    select_portal(selection)

    render_school_info()

    if st.session_state.user is not None:
        portal = st.session_state.portal
        st.sidebar.markdown("---")
        st.sidebar.markdown(
            f"<span class='role-badge' style='background-color: {PORTAL_COLORS[portal]}; color: white;'>"
            f"{PORTALS[portal]['name']}</span>",
            unsafe_allow_html=True
        )
        st.sidebar.markdown(f"**Masuk sebagai:** {st.session_state.user.get('Name', '')}")
        if st.sidebar.button("Keluar"):
            st.session_state.user = None
            st.session_state.views = {}
            st.rerun()

    portal = st.session_state.portal
    if portal == "landing":
        render_landing()
        return

    user = check_login(portal)
    if user is None:
        return

    PORTAL_RENDERERS[portal](user)


if __name__ == "__main__":
    main()
