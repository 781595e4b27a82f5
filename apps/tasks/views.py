"""
Views for tasks app.

JSON endpoints (session-authenticated):
- Task list with filters, sorting and pagination; task creation
- Task detail, edit and delete
- Status changes
- Dashboard snapshot
- CSV export
"""

from django.core.exceptions import PermissionDenied
from django.core.paginator import EmptyPage, PageNotAnInteger, Paginator
from django.http import Http404, HttpResponse
from django.utils import timezone

from apps.common.http import api_view, form_errors_response, parse_json_body, success_response
from .forms import TaskForm, TaskStatusForm
from .models import Task
from .permissions import can_view_task
from .services import (
    change_status, create_task, delete_task, export_tasks_csv,
    get_dashboard, get_filtered_tasks, update_task,
)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def _get_task(request, pk):
    """Load a task the requester may see; 404 if missing, 403 if hidden."""
    task = Task.objects.select_related('assignee', 'reporter').filter(pk=pk).first()
    if task is None:
        raise Http404('Task not found.')
    if not can_view_task(request.user, task):
        raise PermissionDenied("You don't have permission to view this task.")
    return task


def _page_size(request):
    try:
        size = int(request.GET.get('limit', DEFAULT_PAGE_SIZE))
    except (TypeError, ValueError):
        return DEFAULT_PAGE_SIZE
    return max(1, min(size, MAX_PAGE_SIZE))


# =============================================================================
# Task Collection
# =============================================================================

@api_view(['GET', 'POST'])
def task_collection_view(request):
    if request.method == 'POST':
        return _task_create(request)

    tasks = get_filtered_tasks(request.user, request.GET)

    paginator = Paginator(tasks, _page_size(request))
    page = request.GET.get('page', 1)
    try:
        tasks_page = paginator.page(page)
    except PageNotAnInteger:
        tasks_page = paginator.page(1)
    except EmptyPage:
        tasks_page = paginator.page(paginator.num_pages)

    return success_response({
        'tasks': [task.to_dict() for task in tasks_page],
        'pagination': {
            'page': tasks_page.number,
            'pages': paginator.num_pages,
            'total': paginator.count,
        },
    })


def _task_create(request):
    form = TaskForm(parse_json_body(request))
    if not form.is_valid():
        return form_errors_response(form)

    data = form.cleaned_data
    task = create_task(
        title=data['title'],
        actor=request.user,
        start_date=data['start_date'],
        end_date=data['end_date'],
        description=data.get('description', ''),
        priority=data['priority'],
        assignee=data.get('assignee'),
    )
    return success_response({'task': task.to_dict()}, 'Task created successfully', status=201)


# =============================================================================
# Single Task
# =============================================================================

@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
def task_detail_view(request, pk):
    task = _get_task(request, pk)

    if request.method == 'GET':
        return success_response({'task': task.to_dict()})

    if request.method == 'DELETE':
        delete_task(task, request.user)
        return success_response(None, 'Task deleted successfully')

    form = TaskForm(parse_json_body(request), partial=True)
    if not form.is_valid():
        return form_errors_response(form)

    task = update_task(task, request.user, **form.cleaned_data)
    return success_response({'task': task.to_dict()}, 'Task updated successfully')


@api_view(['POST', 'PATCH'])
def task_status_view(request, pk):
    task = _get_task(request, pk)

    form = TaskStatusForm(parse_json_body(request))
    if not form.is_valid():
        return form_errors_response(form)

    task = change_status(task, request.user, form.cleaned_data['status'])
    return success_response({'task': task.to_dict()}, 'Task status updated successfully')


# =============================================================================
# Dashboard & Export
# =============================================================================

@api_view(['GET'])
def dashboard_view(request):
    """
    Dashboard snapshot: upcoming, in progress and overdue tasks plus counts,
    all scoped to what the requester can see.
    """
    dashboard = get_dashboard(request.user)
    for bucket in ('upcoming', 'in_progress', 'overdue'):
        dashboard[bucket] = [task.to_dict() for task in dashboard[bucket]]
    return success_response(dashboard)


@api_view(['GET'])
def task_export_view(request):
    """Download the requester's filtered task list as CSV."""
    response = HttpResponse(content_type='text/csv')
    filename = f'tasks-{timezone.now():%Y-%m-%d}.csv'
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    export_tasks_csv(request.user, request.GET, response)
    return response
