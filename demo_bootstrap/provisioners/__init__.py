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

"""Cluster provisioner backends and the backend factory."""

from __future__ import annotations

from demo_bootstrap.config import BootstrapConfig
from demo_bootstrap.constants import BACKEND_CONTAINER, BACKEND_HOST, BACKEND_K3D, BACKEND_VM
from demo_bootstrap.errors import BootstrapError
from demo_bootstrap.provisioners.base import ClusterProvisioner, k3s_server_args
from demo_bootstrap.provisioners.container import ContainerProvisioner
from demo_bootstrap.provisioners.host import HostProvisioner
from demo_bootstrap.provisioners.k3d import K3dProvisioner
from demo_bootstrap.provisioners.vm import VmProvisioner

PROVISIONERS: dict[str, type[ClusterProvisioner]] = {
    BACKEND_HOST: HostProvisioner,
    BACKEND_CONTAINER: ContainerProvisioner,
    BACKEND_VM: VmProvisioner,
    BACKEND_K3D: K3dProvisioner,
}


def get_provisioner(cfg: BootstrapConfig) -> ClusterProvisioner:
    """Return the provisioner for the configured backend."""
    try:
        return PROVISIONERS[cfg.backend](cfg)
    except KeyError:
        raise BootstrapError("config", f"unknown backend '{cfg.backend}'") from None


__all__ = [
    "ClusterProvisioner",
    "ContainerProvisioner",
    "HostProvisioner",
    "K3dProvisioner",
    "PROVISIONERS",
    "VmProvisioner",
    "get_provisioner",
    "k3s_server_args",
]
