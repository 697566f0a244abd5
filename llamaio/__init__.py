"""llamaio - Task management REST API with users and task assignment."""
