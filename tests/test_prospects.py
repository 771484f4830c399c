import csv
import io
from datetime import datetime, timezone
from unittest.mock import Mock, patch

import requests

from elevates.exceptions import NotFoundError, UpstreamServiceError, ValidationError
from elevates.prospects.services import pipeline_analytics, prospect_repository
from elevates.prospects.services.outreach_client import fetch_outreach_prospects
from elevates.prospects.services.outreach_mapper import (
    OUTREACH_FIELDS,
    determine_priority,
    outreach_to_prospect,
    prospect_to_outreach,
)
from tests.base import APITestCase, BaseTestCase

NOW = datetime(2026, 3, 31, 12, 0, tzinfo=timezone.utc)


def outreach_record(**overrides):
    record = {
        'prospect_id': 'P-001',
        'first_name': 'Ada',
        'last_name': 'Lovelace',
        'email': 'ada@engines.io',
        'company': 'Analytical Engines',
        'title': 'CTO',
        'industry': 'Fintech',
        'list_source': 'Apollo',
        'campaign_name': 'Q1 Founders',
        'date_added': '2026-03-01T09:00:00.000Z',
        'email_1_sent': '2026-03-02T09:00:00.000Z',
        'email_2_sent': '2026-03-05T09:00:00.000Z',
        'replied': 'True',
        'reply_date': '2026-03-06T09:00:00.000Z',
        'reply_type': 'interested',
        'meeting_booked': 'False',
        'status': 'Replied',
        'last_updated': '2026-03-06T09:00:00.000Z',
    }
    record.update(overrides)
    return record


def prospect(stage='new-lead', **overrides):
    record = {
        'id': overrides.pop('id', stage),
        'name': 'Grace Hopper',
        'stage': stage,
        'dateAdded': '2026-03-10T00:00:00.000Z',
        'priority': 'medium',
        'source': 'LinkedIn',
        'followUps': [],
        'tags': [],
        'createdAt': '2026-03-01T00:00:00.000Z',
        'updatedAt': '2026-03-01T00:00:00.000Z',
    }
    record.update(overrides)
    return record


class TestOutreachMapper(BaseTestCase):

    def test_outreach_record_to_prospect(self):
        mapped = outreach_to_prospect(outreach_record())
        self.assertEqual(mapped['id'], 'P-001')
        self.assertEqual(mapped['name'], 'Ada Lovelace')
        self.assertEqual(mapped['stage'], 'connected')
        self.assertEqual(mapped['priority'], 'high')
        self.assertTrue(mapped['accepted'])
        self.assertEqual(mapped['dateInvited'], '2026-03-02T09:00:00.000Z')
        self.assertEqual(mapped['followUp1Date'], '2026-03-05T09:00:00.000Z')
        self.assertEqual(mapped['tags'], ['Fintech', 'Q1 Founders', 'Apollo'])
        self.assertEqual(mapped['source'], 'Apollo')
        self.assertIsNone(mapped['dateClosed'])

    def test_unknown_status_and_missing_names(self):
        mapped = outreach_to_prospect({'status': 'Bounced'})
        self.assertEqual(mapped['stage'], 'new-lead')
        self.assertEqual(mapped['name'], 'Unknown')
        self.assertTrue(mapped['id'].startswith('prospect-'))
        self.assertEqual(mapped['tags'], ['Unknown', 'Outreach', 'Unknown'])
        self.assertEqual(mapped['source'], 'Outreach System')

    def test_closed_statuses_get_close_date(self):
        mapped = outreach_to_prospect(outreach_record(status='Won'))
        self.assertEqual(mapped['stage'], 'closed-won')
        self.assertEqual(mapped['dateClosed'], '2026-03-06T09:00:00.000Z')

    def test_priority_rules(self):
        self.assertEqual(determine_priority({'status': 'Nurture', 'reply_type': 'interested'}), 'low')
        self.assertEqual(determine_priority({'meeting_booked': 'True'}), 'high')
        self.assertEqual(determine_priority({'meeting_booked': 'False'}), 'medium')

    def test_prospect_to_outreach(self):
        record = prospect_to_outreach(prospect(
            'proposal-sent', name='Grace Brewster Hopper', priority='high',
            tags=['Outreach', 'Defense'], linkedinProfile='https://linkedin.com/in/grace',
            followUps=[{'id': 'f1', 'date': '2026-04-01', 'type': 'email', 'notes': 'Send deck'}],
        ))
        self.assertEqual(set(record), set(OUTREACH_FIELDS))
        self.assertEqual(record['first_name'], 'Grace')
        self.assertEqual(record['last_name'], 'Brewster Hopper')
        self.assertEqual(record['status'], 'Qualified')
        self.assertEqual(record['deal_stage'], 'Discovery')
        self.assertEqual(record['reply_type'], 'interested')
        self.assertEqual(record['replied'], 'True')
        self.assertEqual(record['meeting_booked'], 'True')
        self.assertEqual(record['meeting_completed'], 'True')
        self.assertEqual(record['industry'], 'Defense')
        self.assertEqual(record['linkedin_connected'], 'True')
        self.assertEqual(record['next_step'], 'Send deck')
        self.assertEqual(record['next_step_date'], '2026-04-01')

    def test_new_lead_exports_as_contacted(self):
        record = prospect_to_outreach(prospect('new-lead'))
        self.assertEqual(record['status'], 'Contacted')
        self.assertEqual(record['replied'], 'False')
        self.assertEqual(record['deal_stage'], '')
        self.assertEqual(record['list_source'], 'LinkedIn')


class TestPipelineAnalytics(BaseTestCase):

    def setUp(self):
        super().setUp()
        self.prospects = [
            prospect('new-lead', id='a', priority='high'),
            prospect('new-lead', id='b', source=None),
            prospect('invited', id='c', priority='low'),
            prospect('closed-won', id='d', dateClosed='2026-03-30T10:00:00.000Z',
                     followUps=[{'id': 'f1', 'completed': True}, {'id': 'f2', 'completed': False}]),
        ]

    def test_stage_stats_cover_every_stage(self):
        stats = pipeline_analytics.get_stage_stats(self.prospects)
        self.assertEqual(len(stats), 9)
        self.assertEqual(stats['new-lead'], 2)
        self.assertEqual(stats['proposal-sent'], 0)

    def test_conversion_rate(self):
        self.assertEqual(pipeline_analytics.get_conversion_rate(self.prospects), 25.0)
        self.assertEqual(pipeline_analytics.get_conversion_rate([]), 0.0)

    def test_source_and_priority_stats(self):
        sources = {s['name']: s['value'] for s in pipeline_analytics.get_source_stats(self.prospects)}
        self.assertEqual(sources, {'LinkedIn': 3, 'Unknown': 1})

        priorities = pipeline_analytics.get_priority_stats(self.prospects)
        self.assertEqual([(p['name'], p['value'], p['color']) for p in priorities], [
            ('High', 1, '#EF4444'), ('Medium', 2, '#F59E0B'), ('Low', 1, '#64748B'),
        ])

    def test_follow_up_stats(self):
        stats = pipeline_analytics.get_follow_up_stats(self.prospects)
        self.assertEqual(stats, {'total': 2, 'completed': 1, 'pending': 1, 'completionRate': 50.0})

    def test_funnel_relative_to_new_leads(self):
        funnel = pipeline_analytics.get_conversion_funnel(self.prospects)
        self.assertEqual(funnel[0], {'stage': 'New Lead', 'count': 2, 'percentage': 100.0})
        self.assertEqual(funnel[1]['percentage'], 50.0)
        self.assertEqual(funnel[-1]['stage'], 'Closed Won')
        self.assertEqual(len(funnel), 8)

    def test_trend_data_fills_every_day(self):
        trend = pipeline_analytics.get_trend_data(self.prospects, days=30, now=NOW)
        self.assertEqual(len(trend), 30)
        self.assertEqual(trend[0]['date'], '2026-03-01')
        self.assertEqual(trend[-1]['date'], '2026-03-30')
        by_date = {t['date']: t for t in trend}
        self.assertEqual(by_date['2026-03-10']['added'], 4)
        self.assertEqual(by_date['2026-03-30']['won'], 1)
        self.assertEqual(sum(t['lost'] for t in trend), 0)

    def test_trend_window_excludes_older_prospects(self):
        trend = pipeline_analytics.get_trend_data(self.prospects, days=7, now=NOW)
        self.assertEqual(sum(t['added'] for t in trend), 0)
        self.assertEqual(sum(t['won'] for t in trend), 1)

    def test_trend_counts_whole_first_day(self):
        early = prospect(id='early', dateAdded='2026-03-30T08:00:00.000Z')
        trend = pipeline_analytics.get_trend_data([early], days=1, now=NOW)
        self.assertEqual(trend, [{'date': '2026-03-30', 'added': 1, 'won': 0, 'lost': 0}])

    def test_average_time_in_stage(self):
        averages = pipeline_analytics.get_average_time_in_stage([
            prospect('connected', dateAdded='2026-03-01T00:00:00Z', dateInvited='2026-03-03T00:00:00Z',
                     dateConnected='2026-03-08T12:00:00Z'),
            prospect('invited', dateAdded='2026-03-01T00:00:00Z', dateInvited='2026-03-05T00:00:00Z'),
        ])
        by_stage = {a['stage']: a['averageDays'] for a in averages}
        self.assertEqual(by_stage['new-lead'], 3)
        self.assertEqual(by_stage['invited'], 6)
        self.assertEqual(by_stage['proposal-sent'], 0)

    def test_pipeline_analytics_bundle(self):
        analytics = pipeline_analytics.get_pipeline_analytics(self.prospects, days=14)
        self.assertEqual(analytics['total'], 4)
        self.assertEqual(len(analytics['trendData']), 14)


class TestProspectRepository(BaseTestCase):

    def test_add_assigns_id_and_defaults(self):
        created = prospect_repository.add_prospect({'name': 'Grace Hopper', 'id': 'ignored'})
        self.assertNotEqual(created['id'], 'ignored')
        self.assertEqual(created['stage'], 'new-lead')
        self.assertEqual(created['priority'], 'medium')
        self.assertEqual(created['followUps'], [])
        self.assertEqual(prospect_repository.get_prospect(created['id'])['name'], 'Grace Hopper')

    def test_name_is_required(self):
        with self.assertRaises(ValidationError):
            prospect_repository.add_prospect({'name': '   '})

    def test_search_and_filters(self):
        prospect_repository.add_prospect({'name': 'Grace Hopper', 'company': 'Navy', 'priority': 'high'})
        prospect_repository.add_prospect({'name': 'Alan Turing', 'email': 'alan@bletchley.uk', 'stage': 'invited'})

        self.assertEqual(len(prospect_repository.list_prospects(q='navy')), 1)
        self.assertEqual(len(prospect_repository.list_prospects(q='BLETCHLEY')), 1)
        self.assertEqual(len(prospect_repository.list_prospects(stage='invited')), 1)
        self.assertEqual(len(prospect_repository.list_prospects(priority='high')), 1)
        self.assertEqual(len(prospect_repository.list_prospects(stage='all', priority='all')), 2)

    def test_update_protects_identity(self):
        created = prospect_repository.add_prospect({'name': 'Grace Hopper'})
        updated = prospect_repository.update_prospect(created['id'], {
            'id': 'other', 'createdAt': '2000-01-01T00:00:00.000Z', 'notes': 'Met at conference',
        })
        self.assertEqual(updated['id'], created['id'])
        self.assertEqual(updated['createdAt'], created['createdAt'])
        self.assertEqual(updated['notes'], 'Met at conference')

    def test_move_to_stage_stamps_date(self):
        created = prospect_repository.add_prospect({'name': 'Grace Hopper'})
        moved = prospect_repository.move_to_stage(created['id'], 'closed-lost')
        self.assertEqual(moved['stage'], 'closed-lost')
        self.assertIn('dateClosed', moved)

        followed = prospect_repository.move_to_stage(created['id'], 'follow-up')
        self.assertEqual(followed['stage'], 'follow-up')

        with self.assertRaises(ValidationError):
            prospect_repository.move_to_stage(created['id'], 'stalled')

    def test_missing_prospect(self):
        with self.assertRaises(NotFoundError):
            prospect_repository.delete_prospect('missing')

    def test_follow_up_lifecycle(self):
        created = prospect_repository.add_prospect({'name': 'Grace Hopper'})
        follow_up = prospect_repository.add_follow_up(created['id'], {'date': '2026-04-02', 'type': 'email'})
        self.assertFalse(follow_up['completed'])

        completed = prospect_repository.complete_follow_up(created['id'], follow_up['id'])
        self.assertTrue(completed['completed'])
        self.assertIn('completedDate', completed)

        prospect_repository.delete_follow_up(created['id'], follow_up['id'])
        self.assertEqual(prospect_repository.get_prospect(created['id'])['followUps'], [])

        with self.assertRaises(NotFoundError):
            prospect_repository.update_follow_up(created['id'], follow_up['id'], {'notes': 'x'})

    def test_follow_ups_are_capped(self):
        created = prospect_repository.add_prospect({'name': 'Grace Hopper'})
        for day in range(1, 6):
            prospect_repository.add_follow_up(created['id'], {'date': f'2026-04-0{day}', 'type': 'phone'})
        with self.assertRaises(ValidationError) as ctx:
            prospect_repository.add_follow_up(created['id'], {'date': '2026-04-09', 'type': 'phone'})
        self.assertEqual(str(ctx.exception), 'Maximum 5 follow-ups allowed per prospect')

    def test_pending_follow_ups_sorted_by_date(self):
        first = prospect_repository.add_prospect({'name': 'Grace Hopper'})
        second = prospect_repository.add_prospect({'name': 'Alan Turing'})
        prospect_repository.add_follow_up(first['id'], {'date': '2026-04-10', 'type': 'email'})
        done = prospect_repository.add_follow_up(first['id'], {'date': '2026-04-01', 'type': 'email'})
        prospect_repository.add_follow_up(second['id'], {'date': '2026-04-05', 'type': 'linkedin'})
        prospect_repository.complete_follow_up(first['id'], done['id'])

        pending = prospect_repository.get_pending_follow_ups()
        self.assertEqual([p['followUp']['date'] for p in pending], ['2026-04-05', '2026-04-10'])
        self.assertEqual(pending[0]['prospect']['name'], 'Alan Turing')

    def test_upsert_keeps_follow_ups_and_created_at(self):
        saved, added, updated = prospect_repository.upsert_many([outreach_to_prospect(outreach_record())])
        self.assertEqual((added, updated), (1, 0))
        prospect_repository.add_follow_up('P-001', {'date': '2026-04-01', 'type': 'email'})

        saved, added, updated = prospect_repository.upsert_many([
            outreach_to_prospect(outreach_record(status='Meeting', date_added=None)),
        ])
        self.assertEqual((added, updated), (0, 1))
        stored = prospect_repository.get_prospect('P-001')
        self.assertEqual(stored['stage'], 'meeting-scheduled')
        self.assertEqual(len(stored['followUps']), 1)
        self.assertEqual(stored['createdAt'], '2026-03-01T09:00:00.000Z')


class TestOutreachClient(BaseTestCase):

    @patch('elevates.prospects.services.outreach_client.requests.get')
    def test_list_payload(self, get):
        get.return_value = Mock(ok=True, json=Mock(return_value=[outreach_record()]))
        self.assertEqual(len(fetch_outreach_prospects()), 1)
        self.assertEqual(get.call_args.args[0], 'http://outreach.test/api/prospects')

    @patch('elevates.prospects.services.outreach_client.requests.get')
    def test_wrapped_payload(self, get):
        get.return_value = Mock(ok=True, json=Mock(return_value={'prospects': [outreach_record()]}))
        self.assertEqual(len(fetch_outreach_prospects()), 1)

    @patch('elevates.prospects.services.outreach_client.requests.get')
    def test_failures_raise_upstream_error(self, get):
        get.side_effect = requests.ConnectionError('refused')
        with self.assertRaises(UpstreamServiceError):
            fetch_outreach_prospects()

        get.side_effect = None
        get.return_value = Mock(ok=False, status_code=503)
        with self.assertRaises(UpstreamServiceError):
            fetch_outreach_prospects()

        get.return_value = Mock(ok=True, json=Mock(return_value={'error': 'nope'}))
        with self.assertRaises(UpstreamServiceError):
            fetch_outreach_prospects()


class TestProspectRoutes(APITestCase):

    def setUp(self):
        super().setUp()
        self.login()

    def _create(self, **data):
        return self.client.post('/api/prospects', json={'name': 'Grace Hopper', **data}).get_json()['prospect']

    def test_crud(self):
        created = self._create(company='Navy')
        listed = self.client.get('/api/prospects?q=navy').get_json()
        self.assertEqual(listed['count'], 1)

        response = self.client.put(f"/api/prospects/{created['id']}", json={'priority': 'high'})
        self.assertEqual(response.get_json()['prospect']['priority'], 'high')

        self.assertEqual(self.client.get(f"/api/prospects/{created['id']}").status_code, 200)
        self.assertEqual(self.client.delete(f"/api/prospects/{created['id']}").status_code, 200)
        self.assertEqual(self.client.get(f"/api/prospects/{created['id']}").status_code, 404)

    def test_invalid_priority_rejected(self):
        response = self.client.post('/api/prospects', json={'name': 'Grace', 'priority': 'urgent'})
        self.assertEqual(response.status_code, 400)

    def test_stage_move(self):
        created = self._create()
        response = self.client.post(f"/api/prospects/{created['id']}/stage", json={'stage': 'invited'})
        self.assertIn('dateInvited', response.get_json()['prospect'])

        response = self.client.post(f"/api/prospects/{created['id']}/stage", json={'stage': 'nowhere'})
        self.assertEqual(response.status_code, 400)

    def test_follow_up_routes(self):
        created = self._create()
        response = self.client.post(f"/api/prospects/{created['id']}/follow-ups",
                                    json={'date': '2026-04-02', 'type': 'email', 'notes': 'Intro'})
        self.assertEqual(response.status_code, 201)
        follow_up = response.get_json()['followUp']

        patched = self.client.patch(f"/api/prospects/{created['id']}/follow-ups/{follow_up['id']}",
                                    json={'notes': 'Intro + deck'}).get_json()['followUp']
        self.assertEqual(patched['notes'], 'Intro + deck')

        pending = self.client.get('/api/prospects/follow-ups/pending').get_json()
        self.assertEqual(pending['count'], 1)

        self.client.post(f"/api/prospects/{created['id']}/follow-ups/{follow_up['id']}/complete")
        self.assertEqual(self.client.get('/api/prospects/follow-ups/pending').get_json()['count'], 0)

        response = self.client.delete(f"/api/prospects/{created['id']}/follow-ups/{follow_up['id']}")
        self.assertEqual(response.status_code, 200)

    def test_analytics(self):
        self._create()
        body = self.client.get('/api/prospects/analytics?days=7').get_json()
        self.assertEqual(body['analytics']['total'], 1)
        self.assertEqual(len(body['analytics']['trendData']), 7)

        self.assertEqual(self.client.get('/api/prospects/analytics?days=0').status_code, 400)
        self.assertEqual(self.client.get('/api/prospects/analytics?days=400').status_code, 400)

    def test_sync_describes_format(self):
        body = self.client.get('/api/prospects/sync').get_json()
        self.assertEqual(body['method'], 'POST')

    def test_sync_persists_outreach_records(self):
        response = self.client.post('/api/prospects/sync', json={'prospects': [outreach_record()]})
        body = response.get_json()
        self.assertEqual(body['message'], 'Successfully synced 1 prospects')
        self.assertEqual(body['prospects'][0]['stage'], 'connected')
        self.assertIn('syncedAt', body)
        self.assertEqual(self.client.get('/api/prospects').get_json()['count'], 1)

    def test_sync_requires_array(self):
        response = self.client.post('/api/prospects/sync', json={'prospects': 'nope'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['error'], 'Invalid request: prospects must be an array')

    def test_export_csv(self):
        self._create(stage='closed-won')
        response = self.client.get('/api/prospects/export?format=csv')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.mimetype.startswith('text/csv'))
        self.assertIn('prospects-outreach.csv', response.headers['Content-Disposition'])

        rows = list(csv.DictReader(io.StringIO(response.get_data(as_text=True))))
        self.assertEqual(len(rows), 1)
        self.assertEqual(list(rows[0].keys()), OUTREACH_FIELDS)
        self.assertEqual(rows[0]['status'], 'Won')
        self.assertEqual(rows[0]['deal_stage'], 'Closed-Won')

    def test_export_json_of_posted_prospects(self):
        body = self.client.post('/api/prospects/export', json={'prospects': [prospect('connected')]}).get_json()
        self.assertEqual(body['count'], 1)
        self.assertEqual(body['prospects'][0]['status'], 'Replied')

    def test_export_rejects_unknown_format(self):
        self.assertEqual(self.client.get('/api/prospects/export?format=xml').status_code, 400)

    @patch('elevates.prospects.api.prospect_routes.fetch_outreach_prospects')
    def test_import_outreach(self, fetch):
        fetch.return_value = [outreach_record(), outreach_record(prospect_id='P-002', first_name='Charles')]
        body = self.client.get('/api/import-outreach').get_json()
        self.assertEqual(body['count'], 2)
        self.assertEqual(self.client.get('/api/prospects').get_json()['count'], 2)

    @patch('elevates.prospects.api.prospect_routes.fetch_outreach_prospects')
    def test_import_outreach_upstream_failure(self, fetch):
        fetch.side_effect = UpstreamServiceError('Failed to fetch from Outreach System')
        response = self.client.get('/api/import-outreach')
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.get_json()['error'], 'Failed to fetch from Outreach System')
