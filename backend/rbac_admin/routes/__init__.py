# Overview: Route blueprints package.
