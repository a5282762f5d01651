"""
L4 Execution — these functions WRITE to the system: elevated
commands, downloads, extracted binaries.
"""

from frida_manager.core.services.frida_install.execution.download import (  # noqa: F401
    download,
    filename_from_url,
    format_file_size,
)
from frida_manager.core.services.frida_install.execution.extract import (  # noqa: F401
    copy_binary,
    extract,
    stage_manual_file,
)
from frida_manager.core.services.frida_install.execution.privileged import (  # noqa: F401
    CommandResult,
    PrivilegedExecutor,
)
