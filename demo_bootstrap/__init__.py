# /*
# Copyright 2026 The Demo Bootstrap Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""demo_bootstrap - k3s demo environment bootstrap package."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

console = Console(stderr=True)
logger = logging.getLogger("demo_bootstrap")


def configure_logging(log_file: Path | None = None) -> None:
    """Route diagnostics to stderr and, when given, to a session log file.

    Progress and warnings already reach the terminal through ``console``, so
    the stream handler only carries errors; the log file keeps the INFO trail.

    Args:
        log_file: Session log file path, or None to log to the terminal only.
    """
    handlers: list[logging.Handler] = []
    stream = logging.StreamHandler()
    stream.setLevel(logging.ERROR)
    handlers.append(stream)
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.INFO)
        handlers.append(file_handler)
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
        force=True,
    )
