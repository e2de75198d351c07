from pyvletoolbox.classes.classes import phase, cubic_family, error_kind, class_dic
