"""
Love Journey - API Views
========================

JSON endpoints over the in-memory store.

Every view goes through `api_view`, which:
1. Rejects methods the view doesn't accept
2. Loads the signed-in user from the session (401 otherwise)
3. Turns any JourneyError into a JSON error response

Request bodies may be JSON or form-encoded; camelCase keys from the web
client are accepted and mapped to the forms' snake_case field names.
"""

import json
import logging
import re
from functools import wraps

from django.http import HttpResponse, JsonResponse, QueryDict
from django.utils.dateparse import parse_date, parse_datetime
from django.views.decorators.csrf import ensure_csrf_cookie

from . import services
from .apps import get_store
from .exceptions import JourneyError, NotAuthenticated, NotFound, ValidationError
from .forms import (
    AnswerForm,
    LinkPartnerForm,
    LoginForm,
    MemoryForm,
    PasswordChangeForm,
    QuestionForm,
    RegisterForm,
    RelationshipForm,
    RelationshipUpdateForm,
)
from .media import upload_memory_image

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r'(?<!^)(?=[A-Z])')


# =============================================================================
# PLUMBING
# =============================================================================

def _snake(key):
    return _CAMEL_BOUNDARY.sub('_', key).lower()


def _payload(request):
    """Request body as a dict with snake_case keys."""
    if request.content_type == 'application/json':
        try:
            data = json.loads(request.body or b'{}')
        except ValueError:
            raise ValidationError('Request body is not valid JSON')
        if not isinstance(data, dict):
            raise ValidationError('Request body must be a JSON object')
    elif request.method == 'POST':
        data = request.POST.dict()
    elif request.content_type == 'multipart/form-data':
        # Django only parses form bodies for POST
        post, _files = request.parse_file_upload(request.META, request)
        data = post.dict()
    else:
        data = QueryDict(request.body, encoding=request.encoding).dict()
    return {_snake(key): value for key, value in data.items()}


def _validated(form):
    if not form.is_valid():
        raise ValidationError('Invalid input', errors=form.errors.get_json_data())
    return form.cleaned_data


def _parse_day(value):
    """Calendar day from a URL segment: '2024-01-01' or a full ISO timestamp."""
    try:
        day = parse_date(value)
        if day is None:
            moment = parse_datetime(value)
            day = moment.date() if moment else None
    except ValueError:
        day = None
    if day is None:
        raise ValidationError('Invalid date', errors={'date': [value]})
    return day


def _current_user(request, store):
    user_id = request.session.get('user_id')
    if user_id is None:
        raise NotAuthenticated()
    try:
        return store.users.get(user_id)
    except NotFound:
        # Session outlived the in-memory store (e.g. after a restart)
        request.session.flush()
        raise NotAuthenticated()


def api_view(methods, login_required=True):
    """Wrap a view as `view(request, store, user, *args, **kwargs)`."""
    def decorator(view_func):
        @wraps(view_func)
        def wrapped(request, *args, **kwargs):
            if request.method not in methods:
                return JsonResponse(
                    {'error': 'method_not_allowed', 'message': f'{request.method} not allowed', 'details': None},
                    status=405,
                    headers={'Allow': ', '.join(methods)},
                )

            store = get_store()
            try:
                user = _current_user(request, store) if login_required else None
                return view_func(request, store, user, *args, **kwargs)
            except JourneyError as exc:
                logger.info(
                    '%s %s -> %s %s',
                    request.method, request.path, exc.status_code, exc.message,
                )
                return JsonResponse(exc.to_dict(), status=exc.status_code)
        return wrapped
    return decorator


# =============================================================================
# AUTHENTICATION
# =============================================================================

@api_view(['POST'], login_required=False)
def register_view(request, store, user):
    """Create an account and sign in."""
    data = _validated(RegisterForm(_payload(request)))
    user = services.register_user(store, data['username'], data['password'])
    request.session.cycle_key()
    request.session['user_id'] = user.id
    return JsonResponse(user.to_dict(), status=201)


@api_view(['POST'], login_required=False)
def login_view(request, store, user):
    data = _validated(LoginForm(_payload(request)))
    user = services.authenticate_user(store, data['username'], data['password'])
    if user is None:
        raise NotAuthenticated('Invalid username or password')
    request.session.cycle_key()
    request.session['user_id'] = user.id
    return JsonResponse(user.to_dict())


@api_view(['POST'], login_required=False)
def logout_view(request, store, user):
    request.session.flush()
    return JsonResponse({'ok': True})


@ensure_csrf_cookie
@api_view(['GET'], login_required=False)
def csrf_view(request, store, user):
    """Hands the web client a CSRF cookie before its first POST."""
    return JsonResponse({'ok': True})


@api_view(['GET'])
def user_view(request, store, user):
    return JsonResponse(user.to_dict())


@api_view(['POST'])
def password_view(request, store, user):
    data = _validated(PasswordChangeForm(_payload(request)))
    services.change_password(store, user.id, data['password'])
    # Keep the caller signed in on a fresh session key
    request.session.cycle_key()
    return JsonResponse({'ok': True})


# =============================================================================
# RELATIONSHIP
# =============================================================================

@api_view(['GET', 'POST', 'PATCH'])
def relationship_view(request, store, user):
    """
    GET   - the caller's relationship, or null
    POST  - create one (the caller becomes its creator)
    PATCH - edit partner name, anniversary or description
    """
    if request.method == 'GET':
        relationship = store.relationships.find_by_user(user.id)
        return JsonResponse(relationship.to_dict() if relationship else None, safe=False)

    if request.method == 'POST':
        data = _validated(RelationshipForm(_payload(request)))
        relationship = services.create_relationship(
            store,
            user.id,
            partner_name=data['partner_name'],
            anniversary_date=data['anniversary'],
            description=data['description'],
        )
        return JsonResponse(relationship.to_dict(), status=201)

    form = RelationshipUpdateForm(_payload(request))
    _validated(form)
    relationship = services.update_relationship(store, user.id, **form.changes())
    return JsonResponse(relationship.to_dict())


@api_view(['POST'])
def link_partner_view(request, store, user):
    """Join a relationship with the code your partner shared."""
    data = _validated(LinkPartnerForm(_payload(request)))
    relationship = services.link_with_code(store, user.id, data['partner_code'])
    return JsonResponse(relationship.to_dict())


# =============================================================================
# DAILY QUESTIONS
# =============================================================================

@api_view(['GET'])
def questions_for_date_view(request, store, user, day):
    relationship = services.get_relationship_for(store, user.id, require_partner=True)
    questions = services.questions_for_date(store, relationship, _parse_day(day))
    return JsonResponse([q.to_dict() for q in questions], safe=False)


@api_view(['POST'])
def create_question_view(request, store, user):
    relationship = services.get_relationship_for(store, user.id, require_partner=True)
    data = _validated(QuestionForm(_payload(request)))
    question = services.create_question(
        store,
        relationship,
        text=data['question'],
        day=data['date'],
    )
    return JsonResponse(question.to_dict(), status=201)


@api_view(['PATCH'])
def answer_question_view(request, store, user, question_id):
    """
    Record the caller's answer. When it completes the pair the response
    carries the automatically created next question as `successor`.
    """
    data = _validated(AnswerForm(_payload(request)))
    result, successor = services.answer_question(
        store,
        user.id,
        question_id,
        data['answer'],
        role=data['role'],
    )
    body = result.question.to_dict()
    body['outcome'] = result.outcome.value
    body['successor'] = successor.to_dict() if successor else None
    return JsonResponse(body)


# =============================================================================
# MEMORIES
# =============================================================================

@api_view(['GET', 'POST'])
def memories_view(request, store, user):
    relationship = services.get_relationship_for(store, user.id, require_partner=True)

    if request.method == 'GET':
        memories = services.list_memories(store, relationship)
        return JsonResponse([m.to_dict() for m in memories], safe=False)

    form = MemoryForm(_payload(request), request.FILES)
    data = _validated(form)
    image_url = data['image_url']
    if data['image']:
        image_url = upload_memory_image(data['image'], relationship.id)

    memory = services.create_memory(
        store,
        relationship,
        title=data['title'],
        image_url=image_url,
        when=data['date'],
        description=data['description'],
    )
    return JsonResponse(memory.to_dict(), status=201)


@api_view(['DELETE'])
def delete_memory_view(request, store, user, memory_id):
    """Idempotent: deleting an unknown memory still answers 204."""
    relationship = services.get_relationship_for(store, user.id)
    services.delete_memory(store, relationship, memory_id)
    return HttpResponse(status=204)


# =============================================================================
# HEALTH
# =============================================================================

@api_view(['GET'], login_required=False)
def health_view(request, store, user):
    return JsonResponse({'status': 'ok', 'store': store.stats()})
