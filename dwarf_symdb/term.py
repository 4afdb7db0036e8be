# (c) Copyright 2022 Aaron Kimball
#
# Console output: VT100 color codes, message priority levels, and the print-queue consumer
# that every message from a SymbolDatabase flows through.

import queue
import threading

# Change this flag to enable/disable color formatting.
enable_colors = True

COLOR_WHITE     = '\033[0m'
COLOR_BOLD      = '\033[1m' # High-intensity white on black
COLOR_GRAY      = '\033[90m'
COLOR_RED       = '\033[91m'
COLOR_GREEN     = '\033[92m'
COLOR_YELLOW    = '\033[93m'
COLOR_CYAN      = '\033[96m'

BOLD      = COLOR_BOLD

INFO      = COLOR_WHITE
SUCCESS   = COLOR_GREEN
WARN      = COLOR_YELLOW
ERR       = COLOR_RED

COLOR_OFF = COLOR_WHITE # Normal white on black


def use_colors():
    """
    Return true if we should use color in formatting output.
    """
    return enable_colors

def set_use_colors(do_use_colors):
    global enable_colors
    enable_colors = do_use_colors

def fmt(text, color_code=None):
    """
    Return a string wrapped in the codes to enable a certain color, if use_colors is active.
    """
    if use_colors() and color_code is not None:
        return f'{color_code}{text}{COLOR_OFF}'
    else:
        return text


class MsgLevel(object):
    """
    Priority level codes for messages submitted to ConsolePrinter; used to colorize
    messages appropriately.
    """
    INFO        = 0         # Standard message
    WARN        = 2         # Warnings
    ERR         = 3         # Errors
    DEBUG       = 4         # verboseprint() info from SymbolDatabase.
    SUCCESS     = 5         # Successful.

    @staticmethod
    def color_for_msg(msg_level):
        """
        Return a term color for the message level.
        """
        if msg_level == MsgLevel.WARN:
            return WARN
        elif msg_level == MsgLevel.ERR:
            return ERR
        elif msg_level == MsgLevel.DEBUG:
            return COLOR_GRAY
        elif msg_level == MsgLevel.SUCCESS:
            return SUCCESS
        else:
            return INFO


class ConsolePrinter(object):
    """
    Monitor that owns a queue of things to print to the console. Other threads (or the
    ingestion pass) enqueue (text, MsgLevel) tuples; a service thread prints them in order.
    """

    TIMEOUT = 0.250 # Blink when reading the queue every 250ms.

    def __init__(self):
        self.print_q = queue.Queue(maxsize=16)
        self._alive = True
        self._thread = threading.Thread(target=self.service, name='Console print thread')

    def start(self):
        self._thread.start()

    def shutdown(self):
        """
        Drain anything still queued, then stop the service thread.
        """
        if self._thread.is_alive():
            self.join_q()
        self._alive = False
        if self._thread.is_alive():
            self._thread.join()

    def join_q(self):
        """
        Wait for any pending items to be printed and drained from the queue.
        """
        self.print_q.join()

    def emit(self, textline, prio):
        print(fmt(textline, MsgLevel.color_for_msg(prio)), flush=True)

    def service(self):
        """
        Main service loop for thread. Receive lines to print and hand them to emit().
        """
        while self._alive:
            try:
                (textline, prio) = self.print_q.get(block=True, timeout=ConsolePrinter.TIMEOUT)
            except queue.Empty:
                continue

            try:
                self.emit(textline, prio)
            finally:
                self.print_q.task_done()


class NullPrinter(ConsolePrinter):
    """
    ConsolePrinter implementation that silently discards all text it receives.
    """

    def emit(self, textline, prio):
        pass


class CapturePrinter(ConsolePrinter):
    """
    ConsolePrinter that records (text, level) tuples instead of printing them.
    """

    def __init__(self):
        super().__init__()
        self.messages = []

    def emit(self, textline, prio):
        self.messages.append((textline, prio))

    def messages_at(self, prio):
        return [text for (text, level) in self.messages if level == prio]


# Control codes for verboseprint() - if this sequence preceeds an int, provides instructions on
# how to format it when printed.
#
# n.b. that this is in-band signalling so theoretically could cause regular data we
# verboseprint() to be interpreted as a control code, but these are hopefully unlikely to appear
# in such debugging statements.
VDEC = b'\x00\xFF\x0a'  # Print base 10
VHEX = b'\x00\xFF\x10'  # Print base 16
VHEX4 = b'\x00\xFF\x10\x04'  # Print base 16, 0-pad to 4 places
VHEX8 = b'\x00\xFF\x10\x08'  # Print base 16, 0-pad to 8 places

_VERBOSE_CTRL_FORMATS = {
    VDEC: '{:d}',
    VHEX: '{:x}',
    VHEX4: '{:04x}',
    VHEX8: '{:08x}',
}


def silent(*args):
    """
        dummy method to turn verboseprint() calls to nothing
    """
    pass


def format_verbose(*args):
    """
    Lazily concatenate verboseprint() arguments. An int following a VDEC / VHEX* control code
    is formatted in that base; other non-strings are repr()'d.
    """
    s = ''
    next_ctrl = None
    for arg in args:
        if isinstance(arg, bytes):
            if arg in _VERBOSE_CTRL_FORMATS:
                next_ctrl = arg
                continue
            else:
                # Just a byte string to format.
                s += repr(arg)
        elif next_ctrl is not None and isinstance(arg, int):
            s += _VERBOSE_CTRL_FORMATS[next_ctrl].format(arg)
        elif isinstance(arg, str):
            s += arg
        else:
            s += repr(arg)

        next_ctrl = None

    return s
