import json
import logging
import os
from dataclasses import dataclass
from typing import Any
from typing import Dict
from typing import Optional

import yaml

from davcal.davclient import DAVClient
from davcal.davclient import DEFAULT_URL
from davcal.lib.error import ConfigurationError

"""
Connection settings for davcal.

The config file is JSON or YAML, a dict of sections, each section a
dict of settings.  A section may name another section under
``inherits`` to start out from its settings:

    ---
    default:
      caldav_url: https://caldav.icloud.com
      caldav_user: someone@icloud.com
    work:
      inherits: default
      caldav_pass: abcd-efgh-ijkl-mnop
"""

log = logging.getLogger("davcal")


## Keys a connection can be configured with, see DAVClient.__init__
CONNECTION_KEYS = ("url", "username", "password", "timeout", "ssl_verify_cert")


@dataclass(frozen=True)
class Credentials:
    """Basic auth credentials.  The password never shows up in repr."""

    username: str
    password: str

    @property
    def is_valid(self) -> bool:
        return bool(self.username and self.username.strip()) and bool(
            self.password and self.password.strip()
        )

    def __repr__(self) -> str:
        return "Credentials(username=%r, password='****')" % self.username


def config_section(config, section="default"):
    if section in config and "inherits" in config[section]:
        ret = config_section(config, config[section]["inherits"])
    else:
        ret = {}
    if section in config:
        ret.update(config[section])
    return ret


def read_config(fn, interactive_error=False):
    if not fn:
        cfgdir = f"{os.environ.get('HOME', '/')}/.config/"
        for config_file in (
            f"{cfgdir}/davcal/calendar.conf",
            f"{cfgdir}/davcal/calendar.yaml",
            f"{cfgdir}/davcal/calendar.json",
            f"{cfgdir}/calendar.conf",
            "/etc/davcal/calendar.conf",
        ):
            cfg = read_config(config_file)
            if cfg:
                return cfg
        return None

    try:
        try:
            with open(fn, "rb") as config_file:
                return json.load(config_file)
        except json.decoder.JSONDecodeError:
            try:
                with open(fn, "rb") as config_file:
                    return yaml.safe_load(config_file)
            except yaml.YAMLError:
                log.error(
                    f"config file {fn} exists but is neither valid json nor yaml.  Check the syntax."
                )

    except FileNotFoundError:
        log.debug("no config file at %s", fn)
    except ValueError:
        if interactive_error:
            log.error(
                "error in config file.  Be aware that the interactive configuration will ignore and overwrite the current broken config file",
                exc_info=True,
            )
        else:
            log.error("error in config file.  It will be ignored", exc_info=True)
    return {}


def get_connection_params(
    check_config_file: bool = True,
    config_file: Optional[str] = None,
    config_section: Optional[str] = None,
    environment: bool = True,
    **config_data,
) -> Dict[str, Any]:
    """
    Find the connection parameters (url, username, password, timeout,
    ssl_verify_cert), first source that yields anything wins:

    * The keyword arguments given
    * Environment variables prepended with `DAVCAL_`, like `DAVCAL_URL`,
      `DAVCAL_USERNAME`, `DAVCAL_PASSWORD`.  `DAVCAL_CONFIG_FILE` and
      `DAVCAL_CONFIG_SECTION` pick the config file and section.
    * The config file, keys prepended with `caldav_`.  `caldav_user` and
      `caldav_pass` are accepted for username and password.

    The url defaults to iCloud.
    """
    params = {k: v for k, v in config_data.items() if v is not None}

    if not params and environment:
        for conf_key in (
            x
            for x in os.environ
            if x.startswith("DAVCAL_") and not x.startswith("DAVCAL_CONFIG")
        ):
            params[conf_key[7:].lower()] = os.environ[conf_key]
        if not config_file:
            config_file = os.environ.get("DAVCAL_CONFIG_FILE")
        if not config_section:
            config_section = os.environ.get("DAVCAL_CONFIG_SECTION")

    if not params and check_config_file:
        cfg = read_config(config_file)
        if cfg:
            section = _config_section(cfg, config_section or "default")
            for k in section:
                if k.startswith("caldav_") and section[k]:
                    key = k[7:]
                    if key == "pass":
                        key = "password"
                    if key == "user":
                        key = "username"
                    params[key] = section[k]

    unknown = set(params) - set(CONNECTION_KEYS)
    if unknown:
        log.warning("ignoring unknown connection parameters: %s", sorted(unknown))
    params = {k: v for k, v in params.items() if k in CONNECTION_KEYS}
    if "timeout" in params:
        params["timeout"] = float(params["timeout"])
    if isinstance(params.get("ssl_verify_cert"), str) and params[
        "ssl_verify_cert"
    ].lower() in ("0", "false", "no"):
        params["ssl_verify_cert"] = False
    params.setdefault("url", DEFAULT_URL)
    return params


## get_connection_params shadows the module level name with its argument
_config_section = config_section


def get_davclient(**kwargs) -> DAVClient:
    """
    This function will yield a DAVClient object.  It will not try to
    connect.  The parameters are looked up as described in
    get_connection_params; ConfigurationError is raised if no
    username and password are found.
    """

    params = get_connection_params(**kwargs)
    credentials = Credentials(params.get("username") or "", params.get("password") or "")
    if not credentials.is_valid:
        raise ConfigurationError(
            url=params["url"], reason="no username and password configured"
        )
    return DAVClient(**params)
