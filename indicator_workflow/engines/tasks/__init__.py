"""Tasks Engine - task queries and deletion."""

from indicator_workflow.engines.tasks.task_service import ReviewTaskQueries, TaskService, TaskStatusGroup

__all__ = ["ReviewTaskQueries", "TaskService", "TaskStatusGroup"]
