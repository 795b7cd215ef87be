def subclasses(cls):
    '''yields all (direct and indirect) subclasses of cls.'''
    for subclass in cls.__subclasses__():
        yield subclass
        yield from subclasses(subclass)
