"""Routing — named route templates matched in registration order.

Routes are mapped during setup through ``RouteBuilder`` objects and
compiled into immutable ``Route`` definitions when the app freezes.
"""
