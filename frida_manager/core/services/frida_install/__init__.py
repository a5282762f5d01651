"""
frida-server installation — layered like the rest of the services.

    detection/      L3  read-only probes (device architecture)
    resolver/       L2  release index lookups, asset resolution
    execution/      L4  elevated commands, download, extraction
    orchestration/  L5  install flows composed from the layers above

Public API re-exported here:

    from frida_manager.core.services.frida_install import InstallManager
"""

from frida_manager.core.services.frida_install.detection.architecture import (  # noqa: F401
    detect_architecture,
    normalize_arch,
)
from frida_manager.core.services.frida_install.execution.download import (  # noqa: F401
    download,
    format_file_size,
)
from frida_manager.core.services.frida_install.execution.extract import (  # noqa: F401
    extract,
    stage_manual_file,
)
from frida_manager.core.services.frida_install.execution.privileged import (  # noqa: F401
    CommandResult,
    PrivilegedExecutor,
)
from frida_manager.core.services.frida_install.orchestration.install_manager import (  # noqa: F401
    InstallManager,
)
from frida_manager.core.services.frida_install.resolver.releases import (  # noqa: F401
    ReleaseResolver,
)
