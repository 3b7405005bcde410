from django.contrib import admin

from .models import Bid, Submission, Task


class BidInline(admin.TabularInline):
    model = Bid
    extra = 0
    readonly_fields = ('bidder', 'amount', 'status', 'created_at', 'accepted_at')


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ('id', 'title', 'poster', 'doer', 'budget', 'status', 'created_at')
    list_filter = ('status',)
    search_fields = ('title', 'poster__email', 'doer__email')
    readonly_fields = ('status', 'doer', 'accepted_bid', 'completed_at')
    inlines = [BidInline]


@admin.register(Bid)
class BidAdmin(admin.ModelAdmin):
    list_display = ('id', 'task', 'bidder', 'amount', 'status', 'created_at')
    list_filter = ('status',)
    search_fields = ('bidder__email', 'task__title')


@admin.register(Submission)
class SubmissionAdmin(admin.ModelAdmin):
    list_display = ('id', 'task', 'author', 'status', 'created_at', 'reviewed_at')
    list_filter = ('status',)
