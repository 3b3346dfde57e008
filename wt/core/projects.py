from wt.common.logger import log
from wt.core.models import Project
from wt.net.api import ApiError
from wt.util import Listeners

# Holds the project list fetched from the server, plus which project (if any) is currently selected. The session
# store drives `selected`; the UI only reads it.
class ProjectStore(Listeners):

    def __init__(self, api):
        super().__init__()
        self._api = api
        self.projects = []
        self.loading = False
        self.error = None
        self.selected = None

    # Fetches the full project list. On failure the previous list is kept and `error` holds the message.
    def load_projects(self):
        self.loading = True
        try:
            raw = self._api.get_projects()
            self.projects = [Project.from_json(item) for item in raw]
            self.error = None
            log.info(f"Loaded {len(self.projects)} projects")
        except ApiError as e:
            log.error(f"Failed to load projects: {e}")
            self.error = str(e)
        finally:
            self.loading = False
        self.notify()
        return self.projects

    def refresh_projects(self):
        return self.load_projects()

    def get_project(self, project_id):
        for project in self.projects:
            if project.id == project_id:
                return project
        return None

    def active_projects(self):
        return [p for p in self.projects if p.status == "active"]

    def select(self, project):
        self.selected = project
        log.debug(f"Selected project: {project.name if project else None}")
        self.notify()

    def clear(self):
        self.projects = []
        self.error = None
        self.selected = None
        self.notify()
