from pyvletoolbox.validate.validate import validate_methods, validate_composition, validate_temperature
