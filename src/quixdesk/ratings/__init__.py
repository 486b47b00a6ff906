"""
Ratings Module
==============

Customer ratings of the employee who handled a closed ticket.
"""
