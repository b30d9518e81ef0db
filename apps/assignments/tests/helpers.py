import math
from datetime import date, datetime, timezone as dt_timezone

from apps.assignments.services.geofence import GeofenceValidator
from apps.assignments.services.lifecycle import LifecycleController
from apps.assignments.services.memory import (
    InMemoryAssignmentStore,
    InMemoryIssueTracker,
    InMemoryLocationLog,
    InMemoryPhotoStore,
    InMemoryProjectCatalog,
)
from apps.assignments.services.types import AuthContext, GeofenceRegion, Location, TaskInfo

CENTER_LAT = 12.9716
CENTER_LNG = 77.5946
DAY = date(2024, 3, 18)
NOW = datetime(2024, 3, 18, 9, 0, tzinfo=dt_timezone.utc)

SUPERVISOR = AuthContext(employee_id='sup-1', role='supervisor')
WORKER = AuthContext(employee_id='w-1', role='worker')


def point_north(meters, accuracy=None):
    """Location ``meters`` due north of the site centre."""
    latitude = CENTER_LAT + math.degrees(meters / GeofenceValidator.EARTH_RADIUS_M)
    return Location(latitude=latitude, longitude=CENTER_LNG, accuracy=accuracy)


ON_SITE = point_north(10)


def region(**overrides):
    values = dict(
        center_latitude=CENTER_LAT,
        center_longitude=CENTER_LNG,
        radius_meters=100,
        strict_mode=True,
        allowed_variance_meters=10,
    )
    values.update(overrides)
    return GeofenceRegion(**values)


class Clock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


def build_engine(projects=('p-1',), tasks_per_project=4, estimated_minutes=120, **kwargs):
    """Controller over in-memory collaborators with tasks ``{project}-t{n}``."""
    project_region = kwargs.pop('region', None) or region()
    catalog = InMemoryProjectCatalog()
    for project_id in projects:
        catalog.add_project(project_id, project_region)
        for n in range(1, tasks_per_project + 1):
            catalog.add_task(TaskInfo(
                id=f'{project_id}-t{n}',
                project_id=project_id,
                name=f'Task {n}',
                estimated_minutes=estimated_minutes,
                unit='sqft',
                work_area='Block A',
            ))

    controller = LifecycleController(
        store=InMemoryAssignmentStore(),
        catalog=catalog,
        issue_tracker=InMemoryIssueTracker(),
        photo_store=InMemoryPhotoStore(),
        location_log=InMemoryLocationLog(),
        clock=kwargs.pop('clock', None) or Clock(),
        **kwargs,
    )
    return controller
