from pyvletoolbox.constants.constants import *
