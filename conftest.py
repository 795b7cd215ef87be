'''Puts the checkout on sys.path, so the tests run without installing.'''
