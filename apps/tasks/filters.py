"""
Task filters using django-filter.

Ad-hoc filters layered on top of the role visibility predicate:
- Status filter (multi-select)
- Priority filter (multi-select)
- Search (title, description)
- Assignee override (validated against the actor's role)
- Reporter filter (Admin only)
- Date window (start on/after, end on/before, due on a given day)

The queryset handed to TaskFilter must already be scoped with
get_visible_tasks(); every filter here is another .filter() call, so role
scoping can only be narrowed, never widened.
"""

import django_filters
from django.db.models import Case, IntegerField, Q, Value, When

from .models import Task
from .permissions import validate_assignee_override


class TaskFilter(django_filters.FilterSet):
    """
    Task filter for list and export views.

    Usage in views:
        filterset = TaskFilter(request.GET, queryset=get_visible_tasks(user), request=request)
        tasks = filterset.qs

    Raises PermissionDenied from .qs when a manager's assignee override
    targets someone outside their allowed set.
    """

    search = django_filters.CharFilter(method='filter_search', label='Search')

    status = django_filters.MultipleChoiceFilter(
        choices=Task.Status.choices,
        label='Status'
    )

    priority = django_filters.MultipleChoiceFilter(
        choices=Task.Priority.choices,
        label='Priority'
    )

    # Validated in filter_assignee rather than by a ModelChoiceFilter so an
    # out-of-scope id is rejected instead of quietly matching nothing
    assignee = django_filters.CharFilter(method='filter_assignee', label='Assignee')

    reporter = django_filters.NumberFilter(method='filter_reporter', label='Reporter')

    start_date = django_filters.DateTimeFilter(
        field_name='start_date',
        lookup_expr='gte',
        label='Starts on or after'
    )

    end_date = django_filters.DateTimeFilter(
        field_name='end_date',
        lookup_expr='lte',
        label='Due on or before'
    )

    date = django_filters.DateFilter(
        field_name='end_date',
        lookup_expr='date',
        label='Due on'
    )

    class Meta:
        model = Task
        fields = ['status', 'priority']

    def __init__(self, data=None, queryset=None, *, request=None, actor=None, **kwargs):
        """
        Either request or actor identifies the user the filters act for;
        services that run outside a request (CSV export) pass actor.
        """
        super().__init__(data, queryset, request=request, **kwargs)
        self.request = request
        self.actor = actor or (request.user if request else None)

    def filter_search(self, queryset, name, value):
        """
        Search across title and description.
        Case-insensitive partial matching.
        """
        if not value:
            return queryset

        return queryset.filter(
            Q(title__icontains=value) |
            Q(description__icontains=value)
        )

    def filter_assignee(self, queryset, name, value):
        assignee_id = validate_assignee_override(self.actor, value)
        if assignee_id is None:
            return queryset
        return queryset.filter(assignee_id=assignee_id)

    def filter_reporter(self, queryset, name, value):
        """Honoured for admins only; ignored for everyone else."""
        if value is None or self.actor is None or not self.actor.is_admin():
            return queryset
        return queryset.filter(reporter_id=int(value))


# =============================================================================
# Helper Functions
# =============================================================================

SORTABLE_FIELDS = ['created_at', 'updated_at', 'start_date', 'end_date', 'status', 'title']


def apply_sorting(queryset, sort_param):
    """
    Apply sorting to queryset based on sort parameter.

    Args:
        queryset: Task queryset
        sort_param: Sort field (with optional '-' prefix for descending)

    Returns:
        Sorted queryset; unknown fields fall back to newest first
    """
    if not sort_param:
        return queryset.order_by('-created_at')

    # Priority sorts by rank, not alphabetically; '-priority_order' puts high first
    if sort_param in ['priority_order', '-priority_order', 'priority', '-priority']:
        priority_order = Case(
            When(priority=Task.Priority.HIGH, then=Value(1)),
            When(priority=Task.Priority.MEDIUM, then=Value(2)),
            When(priority=Task.Priority.LOW, then=Value(3)),
            default=Value(4),
            output_field=IntegerField()
        )
        queryset = queryset.annotate(priority_order=priority_order)

        if sort_param.startswith('-'):
            return queryset.order_by('priority_order', '-created_at')
        return queryset.order_by('-priority_order', '-created_at')

    field = sort_param.lstrip('-')
    if field in SORTABLE_FIELDS:
        return queryset.order_by(sort_param, '-pk')

    return queryset.order_by('-created_at')
