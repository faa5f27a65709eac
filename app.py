"""
Photo Grouper - Streamlit Web Application

A visual report for the grouping stage:
- Temporal/exposure clustering with size-bounded splitting
- Duplicate groups and grouping warnings from the culling report
- Representative selection per cluster
"""

import streamlit as st
import tempfile
from pathlib import Path
from PIL import Image
import plotly.express as px

from photo_grouper.config import GroupingConfig
from photo_grouper.pipeline import process_directory
from photo_grouper.reporting import clusters_to_dataframe
from photo_grouper.error_handling import PhotoGrouperError

# Page configuration
st.set_page_config(
    page_title="Photo Grouper",
    page_icon="📸",
    layout="wide",
    initial_sidebar_state="expanded"
)

# Initialize session state
if 'processed' not in st.session_state:
    st.session_state.processed = False
if 'result' not in st.session_state:
    st.session_state.result = None


def save_uploads(uploaded_files, culling_report=None) -> Path:
    """Write uploaded images (and an optional culling report) to a temp folder."""
    temp_dir = Path(tempfile.mkdtemp())
    for uploaded_file in uploaded_files:
        with open(temp_dir / uploaded_file.name, 'wb') as f:
            f.write(uploaded_file.getbuffer())
    if culling_report is not None:
        with open(temp_dir / "culling_report.json", 'wb') as f:
            f.write(culling_report.getbuffer())
    return temp_dir


def run(input_dir: str, output_dir: str, config: GroupingConfig, dry_run: bool):
    progress_bar = st.progress(0)
    status_text = st.empty()

    def on_progress(done, total):
        progress_bar.progress(done / total)
        status_text.text(f"Reading metadata: {done}/{total}")

    result = process_directory(input_dir, output_dir, config=config,
                               dry_run=dry_run, progress_callback=on_progress)

    progress_bar.empty()
    status_text.empty()
    return result


def show_distributions(report):
    statistics = report.get('statistics', {})
    col1, col2 = st.columns(2)

    with col1:
        sizes = statistics.get('groupSizeDistribution', {})
        fig = px.bar(x=list(sizes.keys()), y=list(sizes.values()),
                     labels={'x': 'Images per cluster', 'y': 'Clusters'},
                     title="Cluster sizes")
        st.plotly_chart(fig, use_container_width=True)

    with col2:
        spans = statistics.get('timeSpanDistribution', {})
        fig = px.bar(x=list(spans.keys()), y=list(spans.values()),
                     labels={'x': 'Time span', 'y': 'Clusters'},
                     title="Cluster time spans")
        st.plotly_chart(fig, use_container_width=True)


def main():
    # Header
    st.title("📸 Photo Grouper")
    st.markdown("*Group a shoot into moments and pick the shots worth enhancing*")
    st.markdown("---")

    # Sidebar - Configuration
    defaults = GroupingConfig()
    with st.sidebar:
        st.header("⚙️ Configuration")

        st.subheader("🕒 Clustering")
        time_threshold = st.slider(
            "Soft time threshold (minutes)",
            min_value=1, max_value=120, value=defaults.time_threshold, step=1,
            help="Only used for reporting"
        )
        max_time_gap = st.slider(
            "Maximum gap (minutes)",
            min_value=1, max_value=240, value=defaults.max_time_gap, step=1
        )
        iso_tolerance = st.slider(
            "ISO tolerance",
            min_value=50.0, max_value=3200.0, value=defaults.iso_tolerance, step=50.0
        )
        aperture_tolerance = st.slider(
            "Aperture tolerance (f-stops)",
            min_value=0.1, max_value=8.0, value=defaults.aperture_tolerance, step=0.1
        )

        st.subheader("✂️ Splitting & Selection")
        max_cluster_size = st.number_input(
            "Maximum cluster size", min_value=1, max_value=500, value=defaults.max_cluster_size
        )
        max_standalone = st.number_input(
            "Standalone representatives per cluster",
            min_value=0, max_value=20, value=defaults.max_standalone_representatives
        )
        dry_run = st.checkbox("Dry run (reports only)", value=True)

    config = GroupingConfig(
        time_threshold=int(time_threshold),
        max_time_gap=int(max_time_gap),
        iso_tolerance=float(iso_tolerance),
        aperture_tolerance=float(aperture_tolerance),
        max_cluster_size=int(max_cluster_size),
        max_standalone_representatives=int(max_standalone),
    )

    # Main content
    tab1, tab2, tab3 = st.tabs(["📤 Input & Process", "📊 Results", "🖼️ Gallery"])

    with tab1:
        st.header("Choose Your Photos")

        source = st.radio("Source:", ["Folder on disk", "Upload"], horizontal=True)
        input_dir = None

        if source == "Folder on disk":
            folder = st.text_input("Input folder", help="Searched recursively; culling_report.json is picked up if present")
            if folder:
                input_dir = folder
        else:
            uploaded_files = st.file_uploader(
                "Choose image files (JPG, PNG, TIFF)",
                type=['jpg', 'jpeg', 'png', 'tif', 'tiff'],
                accept_multiple_files=True,
            )
            culling_report = st.file_uploader("Culling report (optional)", type=['json'])
            if uploaded_files:
                st.success(f"✅ Uploaded {len(uploaded_files)} images")
                input_dir = str(save_uploads(uploaded_files, culling_report))

        output_dir = st.text_input("Output folder", value=str(Path(tempfile.gettempdir()) / "photo_grouper_output"))

        col1, col2, col3 = st.columns([1, 2, 1])
        with col2:
            if st.button("🚀 Group Photos", use_container_width=True, disabled=not input_dir):
                with st.spinner("Grouping your photos..."):
                    try:
                        st.session_state.result = run(input_dir, output_dir, config, dry_run)
                        st.session_state.processed = True
                        st.success("🎉 Grouping complete!")
                    except PhotoGrouperError as e:
                        st.error(str(e))

    with tab2:
        st.header("Grouping Results")

        if not st.session_state.processed:
            st.info("👈 Choose and process photos first!")
        else:
            result = st.session_state.result
            summary = result.report.get('summary', {})

            # Summary metrics
            st.subheader("📈 Summary")
            col1, col2, col3, col4 = st.columns(4)
            with col1:
                st.metric("Total Images", summary.get('totalImages', 0))
            with col2:
                st.metric("Clusters", summary.get('totalClusters', 0))
            with col3:
                st.metric("Representatives", summary.get('totalRepresentatives', 0))
            with col4:
                st.metric("Compression", f"{result.manifest.get('compressionRatio', 0.0)}x")

            for issue in result.issues:
                st.warning(issue)

            st.markdown("---")

            with st.expander("🗂️ Clusters", expanded=True):
                df_clusters = clusters_to_dataframe(result.clusters, result.representatives)
                st.dataframe(df_clusters, use_container_width=True)

                map_data = df_clusters[df_clusters['Latitude'].notna()]
                if not map_data.empty:
                    st.subheader("📍 Cluster Map")
                    fig = px.scatter_mapbox(
                        map_data,
                        lat='Latitude',
                        lon='Longitude',
                        hover_name='Name',
                        hover_data=['Images'],
                        size='Images',
                        color='Images',
                        color_continuous_scale='Teal',
                        zoom=3,
                        height=400,
                    )
                    fig.update_layout(
                        mapbox_style="open-street-map",
                        margin={"r": 0, "t": 0, "l": 0, "b": 0}
                    )
                    st.plotly_chart(fig, use_container_width=True)

            with st.expander("📊 Distributions", expanded=True):
                show_distributions(result.report)

    with tab3:
        st.header("Cluster Gallery")

        if not st.session_state.processed:
            st.info("👈 Choose and process photos first!")
        else:
            result = st.session_state.result

            if not result.clusters:
                st.warning("No clusters were created.")
                st.stop()

            cluster_names = [cluster.name for cluster in result.clusters]
            selected = st.selectbox("Select Cluster", cluster_names)
            cluster = result.clusters[cluster_names.index(selected)]
            chosen = {r.file_path for r in result.representatives_for(cluster.name)}

            only_representatives = st.checkbox("Representatives only", value=False)
            display = [r for r in cluster.files if not only_representatives or r.file_path in chosen]

            st.write(f"Showing {len(display)} of {len(cluster.files)} images "
                     f"({cluster.time_span} min, {', '.join(cluster.cameras)})")

            cols_per_row = 4
            for i in range(0, len(display), cols_per_row):
                cols = st.columns(cols_per_row)
                for j, col in enumerate(cols):
                    if i + j < len(display):
                        record = display[i + j]
                        with col:
                            try:
                                with Image.open(record.file_path) as pil_img:
                                    st.image(pil_img.copy(), use_container_width=True)
                            except OSError as e:
                                st.error(f"Error loading image: {e}")

                            status = "⭐ Representative" if record.file_path in chosen else ""
                            rating = f"{record.quality_rating:.1f}" if record.quality_rating is not None else "-"
                            st.caption(record.file_name)
                            st.caption(f"{record.timestamp:%H:%M:%S} | Rating: {rating} {status}")
                            if record.duplicate_group_id:
                                st.caption(f"🔁 {record.duplicate_group_id}")


if __name__ == "__main__":
    main()
