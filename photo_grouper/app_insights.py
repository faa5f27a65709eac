"""
Application Insights telemetry for grouping runs.

Disabled unless APPLICATIONINSIGHTS_CONNECTION_STRING is set; every call is
then a no-op.
"""
import os
import logging
from typing import Dict, Optional, Union
from opencensus.ext.azure import metrics_exporter
from opencensus.ext.azure.log_exporter import AzureLogHandler
from opencensus.stats import aggregation as aggregation_module
from opencensus.stats import measure as measure_module
from opencensus.stats import stats as stats_module
from opencensus.stats import view as view_module
from opencensus.tags import tag_map as tag_map_module

logger = logging.getLogger(__name__)

# name -> (description, unit, float measure)
MEASURES = {
    "images_processed": ("Images read by the grouping stage", "images", False),
    "metadata_fallbacks": ("Images grouped by file time only", "images", False),
    "clusters_created": ("Clusters after size refinement", "clusters", False),
    "representatives_selected": ("Images forwarded for enhancement", "images", False),
    "processing_time": ("Grouping run time", "seconds", True),
}


class AppInsights:
    """Application Insights telemetry client."""

    def __init__(self, connection_string: Optional[str] = None):
        self.connection_string = connection_string or os.getenv("APPLICATIONINSIGHTS_CONNECTION_STRING")
        self.enabled = bool(self.connection_string)
        self.measures: Dict[str, Union[measure_module.MeasureInt, measure_module.MeasureFloat]] = {}

        if self.enabled:
            logging.getLogger('photo_grouper').addHandler(
                AzureLogHandler(connection_string=self.connection_string)
            )
            self._register_measures()
            logger.info("Application Insights telemetry enabled")
        else:
            logger.debug("Application Insights not configured (missing connection string)")

    def _register_measures(self):
        self.stats = stats_module.stats
        view_manager = self.stats.view_manager

        for name, (description, unit, is_float) in MEASURES.items():
            measure_class = measure_module.MeasureFloat if is_float else measure_module.MeasureInt
            measure = measure_class(name, description, unit)
            self.measures[name] = measure
            view_manager.register_view(view_module.View(
                f"{name}_view",
                description,
                [],
                measure,
                aggregation_module.LastValueAggregation()
            ))

        view_manager.register_exporter(
            metrics_exporter.new_metrics_exporter(connection_string=self.connection_string)
        )

    def record(self, name: str, value: Union[int, float]):
        """Record one value for a measure from MEASURES."""
        if not self.enabled:
            return

        mmap = self.stats.stats_recorder.new_measurement_map()
        if MEASURES[name][2]:
            mmap.measure_float_put(self.measures[name], float(value))
        else:
            mmap.measure_int_put(self.measures[name], int(value))
        mmap.record(tag_map_module.TagMap())

    def track_grouping_run(self, images: int, fallbacks: int, clusters: int,
                           representatives: int, seconds: float, dry_run: bool = False):
        """Record the measures of one completed run and emit a completion event."""
        if not self.enabled:
            return

        self.record("images_processed", images)
        self.record("metadata_fallbacks", fallbacks)
        self.record("clusters_created", clusters)
        self.record("representatives_selected", representatives)
        self.record("processing_time", seconds)
        self.track_event("grouping_completed", {
            'images': images,
            'clusters': clusters,
            'representatives': representatives,
            'dry_run': dry_run,
        })

    def track_event(self, event_name: str, properties: Optional[dict] = None):
        if self.enabled:
            logger.info(f"Event: {event_name}", extra={'custom_dimensions': properties or {}})

    def track_exception(self, exception: Exception):
        if self.enabled:
            logger.error(f"Exception occurred: {exception}", exc_info=exception)


# Global instance
app_insights = AppInsights()
