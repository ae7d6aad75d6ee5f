from nexus.utils.base.enums import BaseEnum, CompanySize, ProjectPriority, ProjectStatus, Role

__all__ = ["BaseEnum", "CompanySize", "ProjectPriority", "ProjectStatus", "Role"]
