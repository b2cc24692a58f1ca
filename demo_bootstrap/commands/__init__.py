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

"""CLI subcommand groups and the shared config/logging setup they use."""

from __future__ import annotations

from pathlib import Path

from demo_bootstrap import configure_logging, logger
from demo_bootstrap.config import BootstrapConfig, resolve_config


def load_config(
    variant: str | None = None,
    reset: bool | None = None,
    skip_gitops: bool = False,
    metallb_pool: str | None = None,
    log_dir: Path | None = None,
) -> BootstrapConfig:
    """Resolve the configuration and start the session log for a command."""
    cfg = resolve_config(
        variant=variant,
        reset=reset,
        skip_gitops=skip_gitops,
        metallb_pool=metallb_pool,
        log_dir=log_dir,
    )
    configure_logging(cfg.log_file)
    logger.info("Session log: %s", cfg.log_file)
    return cfg
