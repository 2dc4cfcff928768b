"""
Document Control Platform
HTTP blueprints. Each blueprint module exposes one ``Blueprint`` that the
application factory registers.
"""
