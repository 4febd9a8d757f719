HIDDEN_FIELDS = ('_id', 'password_hash')


def public(document, hidden=HIDDEN_FIELDS):
    """Copy of a stored document that is safe to return as JSON."""
    if document is None:
        return None
    return {k: v for k, v in document.items() if k not in hidden}


def user_summary(user: dict) -> dict:
    return {
        'id': user['user_id'],
        'email': user['email'],
        'name': user.get('name'),
        'role': user.get('role'),
        'survey_completed': (user.get('onboarding_survey') or {}).get('survey_completed', False),
    }


def register_blueprints(app):
    from routes.auth import auth_bp
    from routes.classrooms import classrooms_bp
    from routes.activities import activities_bp
    from routes.assignments import assignments_bp
    from routes.mini_projects import mini_projects_bp
    from routes.surveys import surveys_bp
    from routes.uploads import uploads_bp
    from routes.health import health_bp

    for blueprint in (auth_bp, classrooms_bp, activities_bp, assignments_bp, mini_projects_bp,
                      surveys_bp, uploads_bp, health_bp):
        app.register_blueprint(blueprint)
