"""Updates remote refs from local refs, sending the objects they need.

Every refspec is negotiated before anything is sent, so a refused refspec
stops the whole push with the remote untouched. Accepted refspecs are
then applied one after the other: missing objects go first, in
dependency order, and the remote ref moves last with a single
compare-and-set. If the remote ref moved in between, the refspec is
negotiated once more; a second miss is reported as remote changes.
"""
import logging
from itertools import islice

from . import negotiate
from . import refspec as refspec_
from . import remote as remote_
from . import errors
from . import types
from .progress import ProgressListener
from .types import PushResult, RefUpdate, Rejected, UpToDate

logger = logging.getLogger(__name__)

BATCH_SIZE = 64
CAS_RETRIES = 1


def push(remote=None, refspecs=(), all_=False, progress=None) -> PushResult:
    remote, specs = refspec_.resolve(remote, refspecs, all_)
    transport = remote_.open_transport(remote)
    return push_refspecs(transport, specs, progress)


def push_refspecs(transport: remote_.Transport, specs, progress=None) -> PushResult:
    if progress is None:
        progress = ProgressListener()

    plans = []
    for spec in specs:
        plan = negotiate.negotiate(spec, transport, progress)
        if isinstance(plan, Rejected):
            return PushResult(transport.name, [_failed(plan)], plan)
        plans.append(plan)

    updates = []
    for i, plan in enumerate(plans):
        update = _apply(transport, plan, progress)
        updates.append(update)
        if update.rejection is not None:
            skipped = [str(later.refspec) for later in plans[i + 1:]]
            if skipped:
                logger.warning('not pushing %s', ', '.join(skipped))
            return PushResult(transport.name, updates, update.rejection)

    progress.complete()
    return PushResult(transport.name, updates)


def _apply(transport, plan: types.Negotiation, progress) -> RefUpdate:
    sent = 0
    retries = CAS_RETRIES
    while True:
        if isinstance(plan, UpToDate):
            return RefUpdate(plan.refspec, 'up_to_date', plan.oid, plan.oid, sent)
        if isinstance(plan, Rejected):
            return _failed(plan, sent)

        destination = plan.refspec.destination
        sent += _transfer(transport, plan.missing, progress)

        _check_cancelled(progress)
        progress.set_description(f'Updating {destination}')
        if transport.compare_and_set(destination, plan.old, plan.new):
            logger.info('%s updated on %s: %s -> %s', destination, transport.name,
                        plan.old or '(new)', plan.new)
            remote_.update_tracking_ref(transport, destination, plan.new)
            return RefUpdate(plan.refspec, 'done', plan.old, plan.new, sent)

        if not retries:
            rejection = Rejected(plan.refspec, 'REMOTE_HAS_CHANGES',
                                 f'{destination} kept changing during the push')
            logger.warning('%s: %s', plan.refspec, rejection.detail)
            return _failed(rejection, sent)
        retries -= 1
        logger.warning('%s moved since negotiation, negotiating again', destination)
        plan = negotiate.negotiate(plan.refspec, transport, progress)


def _transfer(transport, missing, progress) -> int:
    if not missing:
        return 0
    progress.set_description(f'Sending objects to {transport.name}')
    sent = done = 0
    for batch in _batches(missing, BATCH_SIZE):
        _check_cancelled(progress)
        sent += transport.send_objects(batch)
        done += len(batch)
        progress.set_progress(done, len(missing))
    logger.debug('sent %d of %d objects to %s', sent, len(missing), transport.name)
    return sent


def _batches(items, size):
    it = iter(items)
    return iter(lambda: list(islice(it, size)), [])


def _check_cancelled(progress):
    if progress.canceled:
        raise errors.PushCancelled('push cancelled')


def _failed(rejection: Rejected, sent=0) -> RefUpdate:
    return RefUpdate(rejection.refspec, 'failed', None, None, sent, rejection)
