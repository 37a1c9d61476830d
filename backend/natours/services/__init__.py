"""
Natours Backend — Business Logic Services
==========================================

What:  Resource services (tours, users, reviews, bookings) built on the
       shared CRUDService, plus authentication and the payment gateway.
How:   Route handlers stay thin: they pull input off the Request Context,
       call a service with the request's AsyncSession, and wrap the result
       in the response envelope. Services raise NatoursErrors; they never
       build HTTP error responses themselves.
"""

