# Overview: Service layer package; business logic and database work behind the routes.
