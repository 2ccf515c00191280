"""
Duty rota: who is rostered as Duty Senior / Duty Junior each day, who actually
covered, and whether each of them attended.
"""
