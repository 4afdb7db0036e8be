# (c) Copyright 2022 Aaron Kimball
#
# User-accessible settings for the symbol database.

import os

import dwarf_symdb.serialize as serialize
from dwarf_symdb.term import MsgLevel

_LOCAL_CONF_FILENAME = os.path.expanduser("~/.dwarf_symdb.conf")

_DEFAULT_MAX_RESOLVE_STEPS = 64
_DEFAULT_MAX_RESOLVE_DEPTH = 8
_DEFAULT_SRC_ENCODING = 'latin-1'

_symdb_conf_keys = [
    "symdb.colors",
    "symdb.conf.formatversion",
    "symdb.resolve.max_depth",
    "symdb.resolve.max_steps",
    "symdb.search.paths",
    "symdb.src.encoding",
    "symdb.verbose",
]


class SymdbConfig(object):
    """
    Holds the config key-value map. Loaded from a dotfile in the user's $HOME unless a
    force_config map is supplied; changes made through set_conf() are written back to the file
    only when the settings came from it.
    """

    def __init__(self, print_q, force_config=None, conf_filename=None):
        """
        @param print_q the queue for user-visible messages.
        @param force_config if not None, provides config inputs and suppresses loading from
            the user config file. Also suppresses subsequent writes to that file.
        @param conf_filename overrides the location of the user config file.
        """
        self._print_q = print_q
        self._conf_filename = conf_filename or _LOCAL_CONF_FILENAME
        self._change_hook = None
        self._do_persist_config_changes = False

        defaults = self._set_conf_defaults()
        if force_config is not None:
            for (key, val) in force_config.items():
                if key not in _symdb_conf_keys:
                    raise KeyError("Not a valid conf key: %s" % key)
                defaults[key] = val
            self._config = defaults
        elif os.path.exists(self._conf_filename):
            self._config = serialize.load_config_file(self._print_q, self._conf_filename,
                                                      'config', defaults)
            self._do_persist_config_changes = True
            # Discard keys we don't recognize rather than carrying them around.
            for key in list(self._config.keys()):
                if key not in _symdb_conf_keys:
                    self._print_q.put((f"Ignoring unknown config key '{key}'", MsgLevel.WARN))
                    del self._config[key]
        else:
            self._config = defaults

    def _set_conf_defaults(self, conf_map=None):
        """
        Populate conf_map with all our config keys, and initialize any default values.
        """
        if conf_map is None:
            conf_map = {}

        for k in _symdb_conf_keys:
            conf_map[k] = None

        conf_map["symdb.conf.formatversion"] = serialize.SYMDB_CONF_FMT_VERSION
        conf_map["symdb.colors"] = True
        conf_map["symdb.verbose"] = False
        conf_map["symdb.search.paths"] = []
        conf_map["symdb.resolve.max_steps"] = _DEFAULT_MAX_RESOLVE_STEPS
        conf_map["symdb.resolve.max_depth"] = _DEFAULT_MAX_RESOLVE_DEPTH
        conf_map["symdb.src.encoding"] = _DEFAULT_SRC_ENCODING

        return conf_map

    @property
    def conf_filename(self):
        return self._conf_filename

    def is_persistent(self):
        """ Return True if set_conf() changes are saved to the config file. """
        return self._do_persist_config_changes

    def set_change_hook(self, hook):
        """
        Set a function hook(key, val) to invoke whenever a key is changed with set_conf().
        """
        self._change_hook = hook

    def get_conf(self, key):
        if key not in _symdb_conf_keys:
            raise KeyError("Not a valid conf key: %s" % key)
        return self._config[key]

    def set_conf(self, key, val):
        """
        Set a key-value pair in the configuration map.
        Then notify the change hook and persist the change if appropriate.
        """
        if key not in _symdb_conf_keys:
            raise KeyError("Not a valid conf key: %s" % key)

        self._config[key] = val

        if self._change_hook is not None:
            self._change_hook(key, val)

        self._persist_config()

    def get_full_config(self):
        """
        Return all user-configurable configuration key-val pairs.
        """
        return self._config.items()

    def get_conf_keys(self):
        """
        Return the set of valid configuration keys for use with set_conf().
        """
        return _symdb_conf_keys

    def _persist_config(self):
        """
        Write the current config out to a file to reload the next time we open a database.
        """
        if not self._do_persist_config_changes:
            return

        self._config["symdb.conf.formatversion"] = serialize.SYMDB_CONF_FMT_VERSION
        serialize.persist_config_file(self._conf_filename, 'config', self._config)
