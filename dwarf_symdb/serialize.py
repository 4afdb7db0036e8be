# (c) Copyright 2022 Aaron Kimball
#
# Read and write the python-syntax config file holding user settings.

from dwarf_symdb.term import MsgLevel

SYMDB_CONF_FMT_VERSION = 1

def load_config_file(print_q, filename, map_name='config', defaults=None):
    """
        Read a symbol database configuration file map.
        This is a python file that will be evaluated in a sterile environment.
        It should contain two variables afterward:
        - `formatversion` specifies this serialization version
        - `{map_name}` is a dict of k-v pairs.

        If `defaults` is a map, then its values populate anything omitted from the loaded map.
        Problems reading the file are reported on print_q; the defaults are returned intact.
    """
    if defaults is None:
        defaults = {}
    new_conf = defaults.copy()

    # The loaded config will be a map named '{map_name}' within an otherwise-empty environment
    init_env = {}
    init_env[map_name] = {}

    try:
        with open(filename, "r") as f:
            conf_text = f.read()
    except OSError as e:
        print_q.put((f"Warning: could not read config file '{filename}': {e}", MsgLevel.WARN))
        return new_conf

    try:
        exec(conf_text, init_env, init_env)
    except Exception:
        # error parsing or executing the config file.
        print_q.put((f"Warning: error parsing config file '{filename}'", MsgLevel.WARN))
        init_env[map_name] = {}
        init_env['formatversion'] = SYMDB_CONF_FMT_VERSION

    fmtver = init_env.get('formatversion')
    loaded_conf = init_env.get(map_name)
    if not isinstance(fmtver, int) or fmtver > SYMDB_CONF_FMT_VERSION:
        print_q.put((f"Error: Cannot read config file '{filename}' with version {fmtver}",
                     MsgLevel.ERR))
        loaded_conf = {} # Disregard the unsupported configuration data.
    elif not isinstance(loaded_conf, dict):
        print_q.put((f"Error in format for config file '{filename}'", MsgLevel.ERR))
        loaded_conf = {}

    # Merge loaded data on top of our default config.
    for (k, v) in loaded_conf.items():
        new_conf[k] = v

    return new_conf


def __persist_conf_var(f, k, v):
    """
        Persist k=v in serialized form to the file handle 'f'.

        Can be called with k=None to serialize a nested value in a list.
    """

    if k is not None:
        f.write(f'  {repr(k)}: ')

    if v is None or isinstance(v, (str, int, float, bool)):
        f.write(repr(v))
    elif isinstance(v, (list, tuple)):
        f.write('[')
        for elem in v:
            __persist_conf_var(f, None, elem)
            f.write(", ")
        f.write(']')
    else:
        # Only plain scalars and lists of them are valid settings.
        raise TypeError(f"Cannot serialize config value of type {type(v)}")

    if k is not None:
        f.write(",\n")


def persist_config_file(filename, map_name, data):
    """
        Write configuration information out to a file.
    """

    with open(filename, "w") as f:
        f.write(f"formatversion = {SYMDB_CONF_FMT_VERSION}\n")
        f.write(f"{map_name} = {{\n\n")
        for (k, v) in data.items():
            __persist_conf_var(f, k, v)
        f.write("\n}\n")
