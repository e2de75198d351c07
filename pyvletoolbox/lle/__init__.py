from pyvletoolbox.lle.lle import LLEResult, VLLEResult, lle_flash, lle_pressure, vlle_pressure, vlle_flash
