# trip_scheduler/routes/__init__.py
from trip_scheduler.routes.planner import create_planner_blueprint

__all__ = ["create_planner_blueprint"]
