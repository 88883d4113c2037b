"""Remote-backed types whose class names collide with tests.models."""


class Celebrity:
    remote_endpoint = '/stars'


class Ttl:
    remote_endpoint = None
