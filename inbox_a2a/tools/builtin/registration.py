"""Registration of the built-in tools."""

from inbox_a2a.tools.builtin.email_insights import EmailInsightsTool
from inbox_a2a.tools.builtin.find_emails import FindEmailsTool
from inbox_a2a.tools.builtin.manage_email import ManageEmailTool
from inbox_a2a.tools.builtin.organize_inbox import OrganizeInboxTool
from inbox_a2a.tools.builtin.smart_folders import SmartFoldersTool
from inbox_a2a.tools.builtin.triage import BatchArchiveEmailsTool, TriageUpdateEmailsTool
from inbox_a2a.tools.registry import ToolRegistry

BUILTIN_TOOLS = (
    ManageEmailTool,
    OrganizeInboxTool,
    SmartFoldersTool,
    TriageUpdateEmailsTool,
    BatchArchiveEmailsTool,
    FindEmailsTool,
    EmailInsightsTool,
)


def register_builtin_tools(registry: ToolRegistry) -> None:
    for tool_cls in BUILTIN_TOOLS:
        registry.register_tool(tool_cls)


def create_default_registry() -> ToolRegistry:
    registry = ToolRegistry()
    register_builtin_tools(registry)
    return registry
