from pyvletoolbox.flash.flash import RachfordRiceResult, FlashResult, rachford_rice, rachford_rice_multiphase, tp_flash
