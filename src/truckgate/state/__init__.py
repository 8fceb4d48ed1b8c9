"""State layer.

Transition rules (:mod:`truckgate.state.machine`) and keyed truck
persistence (:mod:`truckgate.state.store`).
"""
