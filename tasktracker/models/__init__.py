# Import models here so metadata.create_all can discover them
from .task import Task  # noqa: F401
