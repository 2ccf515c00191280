"""
Basic Radio Operator assessments: cohorts, cadets, thirteen-criterion results
and the printable / PDF award forms.
"""
