# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
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

"""
Settings for the surrounding application, read from DEVTOPO_* environment
variables and an optional .env file.
"""
import os
from typing import Dict, Literal, Mapping, Optional

from dotenv import dotenv_values
from pydantic import BaseModel, Field

ENV_PREFIX = "DEVTOPO_"


class TopologySettings(BaseModel):
    """
    Runtime settings. None of these change how a plan is built; they configure
    logging, the plan executor and the secrets fed to the built-in topology.
    """
    log_level: str = "info"
    log_format: Literal["console", "json"] = "console"

    ready_timeout: float = Field(default=60.0, gt=0)
    ready_retries: int = Field(default=3, ge=1)
    max_parallel: int = Field(default=4, ge=1)

    jupyter_token: str = "mynotebook"
    sql_password: Optional[str] = None


def collect_environment(env_file: Optional[str] = ".env",
                        environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Merges variables from an .env file with the process environment.
    The process environment overrides the file.

    :param env_file: Path to the .env file, skipped if missing or None.
    :param environ: Environment to merge over the file, defaults to os.environ.
    :return: The merged variables.
    """
    merged: Dict[str, str] = {}
    if env_file and os.path.exists(env_file):
        merged.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
    merged.update(os.environ if environ is None else environ)
    return merged


def load_settings(env_file: Optional[str] = ".env",
                  environ: Optional[Mapping[str, str]] = None,
                  **overrides) -> TopologySettings:
    """
    Builds settings from DEVTOPO_* variables. Explicit keyword overrides win.
    """
    merged = collect_environment(env_file, environ)
    values = {
        key[len(ENV_PREFIX):].lower(): value
        for key, value in merged.items()
        if key.startswith(ENV_PREFIX)
    }
    values = {k: v for k, v in values.items() if k in TopologySettings.model_fields}
    values.update({k: v for k, v in overrides.items() if v is not None})
    return TopologySettings(**values)
