#!/usr/bin/env python3
"""install_app tool - Install an app bundle on a simulator"""

import logging
import os
from typing import Optional

from xcode_build_mcp.server import mcp
from xcode_build_mcp.devices.lifecycle import install_app as install
from xcode_build_mcp.utils.formatting import format_install_result
from xcode_build_mcp.utils.log_store import LogStore
from xcode_build_mcp.validation import require_non_empty

logger = logging.getLogger(__name__)


@mcp.tool()
async def install_app(app_path: str, simulator: Optional[str] = None) -> str:
    """
    Install a built .app bundle on a simulator, booting it first if needed.

    Args:
        app_path: Path to the .app bundle, e.g. from DerivedData.
        simulator: Simulator name or UDID. If not provided, the single booted
                   simulator is used; no simulator is ever picked at random.

    Returns:
        The installed bundle id and target simulator, or why the install failed.
    """
    app_path = require_non_empty(app_path, "app_path")
    simulator = simulator.strip() if simulator and simulator.strip() else None

    result = await install(app_path, simulator)

    LogStore().save_log(
        "install",
        result.error.message if result.failed else "Install succeeded",
        os.path.splitext(os.path.basename(app_path.rstrip("/")))[0],
        metadata={"outcome": result.outcome, "diagnostics": result.diagnostics},
    )
    return format_install_result(result)
