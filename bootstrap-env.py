#!/usr/bin/env python3
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

"""
bootstrap-env.py - Flagless bootstrap of the k3s demo environment.

Runs the full procedure (preflight, optional reset, cluster bring-up,
kubeconfig, tools, optional MetalLB, Argo CD exposure, GitOps sync, report).
Behaviour comes entirely from DEMO_* environment variables:
    - DEMO_VARIANT (laptop | onprem | vm | k3d, default: laptop)
    - DEMO_RESET (default: true for onprem, false otherwise)
    - DEMO_INSTALL_DIR (default: ~/.k3s-demo)
    - DEMO_METALLB_ENABLED / DEMO_METALLB_IP_POOL
    - DEMO_GITOPS_REMOTE_URL (required unless DEMO_GITOPS_ENABLED=false)
    - DEMO_*_VERSION pins (default: from demo_bootstrap/dependencies.yaml)

Examples:
    DEMO_GITOPS_REMOTE_URL=git@github.com:me/demo-environment-gitops.git ./bootstrap-env.py

    DEMO_VARIANT=onprem DEMO_METALLB_ENABLED=true DEMO_METALLB_IP_POOL=10.0.0.240/28 \
        DEMO_GITOPS_ENABLED=false ./bootstrap-env.py
"""

from demo_bootstrap.cli import main

if __name__ == "__main__":
    main(["run"])
