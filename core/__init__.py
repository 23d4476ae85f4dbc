"""core/ -- Configuration and logging. Imports nothing from api/ or auth/."""
