"""Built-in command modules, discovered by ModuleLoader."""
