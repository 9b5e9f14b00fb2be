import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Profile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('role', models.CharField(choices=[('user', 'User'), ('admin', 'Admin')], default='user', max_length=10)),
                ('bio', models.CharField(blank=True, default='', max_length=200)),
                ('github_profile', models.URLField(blank=True, default='')),
                ('points', models.PositiveIntegerField(db_index=True, default=0)),
                ('level', models.PositiveIntegerField(default=1)),
                ('badges', models.JSONField(blank=True, default=list)),
                ('current_streak', models.PositiveIntegerField(default=0)),
                ('longest_streak', models.PositiveIntegerField(default=0)),
                ('last_active_date', models.DateField(blank=True, null=True)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='profile', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'indexes': [models.Index(fields=['-points', 'user'], name='profile_points_idx')],
            },
        ),
        migrations.CreateModel(
            name='Snippet',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=100)),
                ('problem_description', models.TextField(validators=[django.core.validators.MaxLengthValidator(1000)])),
                ('language', models.CharField(choices=[('cpp', 'C++'), ('python', 'Python'), ('javascript', 'JavaScript'), ('java', 'Java'), ('c', 'C'), ('go', 'Go'), ('rust', 'Rust'), ('typescript', 'TypeScript'), ('php', 'PHP'), ('ruby', 'Ruby')], db_index=True, max_length=20)),
                ('tags', models.JSONField(blank=True, default=list)),
                ('code', models.TextField()),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('approved', 'Approved'), ('rejected', 'Rejected')], db_index=True, default='pending', max_length=10)),
                ('views', models.PositiveIntegerField(db_index=True, default=0)),
                ('upvotes', models.PositiveIntegerField(db_index=True, default=0)),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('author', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='contributions', to=settings.AUTH_USER_MODEL)),
                ('favorited_by', models.ManyToManyField(blank=True, related_name='favorite_snippets', to=settings.AUTH_USER_MODEL)),
                ('upvoted_by', models.ManyToManyField(blank=True, related_name='upvoted_snippets', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['status', '-created_at'], name='snippet_status_created_idx')],
            },
        ),
        migrations.CreateModel(
            name='SnippetComment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('text', models.CharField(max_length=500)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('author', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='snippet_comments', to=settings.AUTH_USER_MODEL)),
                ('snippet', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='comments', to='snippets.snippet')),
            ],
            options={
                'ordering': ['created_at', 'id'],
                'indexes': [models.Index(fields=['snippet', 'created_at'], name='comment_snippet_created_idx')],
            },
        ),
        migrations.CreateModel(
            name='CodeFork',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(blank=True, default='', max_length=200)),
                ('description', models.TextField(blank=True, default='')),
                ('modified_code', models.TextField()),
                ('language', models.CharField(blank=True, default='', max_length=20)),
                ('changes', models.TextField()),
                ('test_results', models.JSONField(blank=True, default=None, null=True)),
                ('votes', models.PositiveIntegerField(default=0)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('accepted', 'Accepted'), ('rejected', 'Rejected')], default='pending', max_length=10)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('forked_by', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='forks', to=settings.AUTH_USER_MODEL)),
                ('original_snippet', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='forks', to='snippets.snippet')),
                ('voted_by', models.ManyToManyField(blank=True, related_name='fork_votes', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-votes', '-created_at', '-id'],
                'indexes': [models.Index(fields=['original_snippet', '-votes', '-created_at'], name='fork_listing_idx')],
            },
        ),
        migrations.CreateModel(
            name='PointEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('points', models.PositiveIntegerField()),
                ('reason', models.CharField(max_length=100)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('recipient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='point_events', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'indexes': [
                    models.Index(fields=['created_at', 'recipient'], name='pointevent_window_idx'),
                    models.Index(fields=['recipient', '-created_at'], name='pointevent_history_idx'),
                ],
            },
        ),
    ]
