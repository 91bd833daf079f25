# Copyright (C) 2014. Ben Pruitt & Nick Conway
# See LICENSE for full GPLv2 license.
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License along
# with this program; if not, write to the Free Software Foundation, Inc.,
# 51 Franklin Street, Fifth Floor, Boston, MA 02110-1301 USA.
"""
ggfusion.ligation
~~~~~~~~~~~~~~~~~

Empirical ligation-frequency data.

A ``LigationMatrix`` holds the observed ligation counts for one enzyme as a
dense, read-only numpy array indexed by the lexicographic overhang universe
(AAAA, AAAC, ... TTTT). Rows are the overhang on one fragment, columns the
overhang it was observed to ligate with; the matrix is asymmetric. A zero
entry means "no observed ligation", not zero risk.

``LigationData`` groups matrices by enzyme data key. It is built once by the
caller and passed into the engine; nothing in the engine reads files. The
optional :func:`loadLigationData` helper reads the published JSON layout and
can cache the dense arrays on disk.

"""
import hashlib
import json
import logging
import os

import numpy as np

from .enzymes import getEnzyme
from .sequtil import allOverhangs, isValidOverhang, rc

logger = logging.getLogger(__name__)


class LigationMatrix(object):
    """Dense ligation-frequency matrix for a single enzyme.

    Args:
        overhang_length (int)       : overhang length (3 or 4 in practice)
        freqs (array-like)          : ``4**L x 4**L`` non-negative counts in
                                      lexicographic overhang order

    Raises:
        ``ValueError`` if the array shape or contents are invalid

    """

    def __init__(self, overhang_length, freqs):
        n = 4 ** overhang_length
        freqs = np.array(freqs, dtype=np.float64)
        if freqs.shape != (n, n):
            raise ValueError('Ligation matrix for %d nt overhangs must be '
                             '%dx%d, got %r' % (overhang_length, n, n,
                                                freqs.shape))
        if not np.isfinite(freqs).all() or (freqs < 0).any():
            raise ValueError('Ligation frequencies must be finite and '
                             'non-negative')
        freqs.setflags(write=False)
        self.overhang_length = overhang_length
        self.overhangs = tuple(allOverhangs(overhang_length))
        self.index = {oh: i for i, oh in enumerate(self.overhangs)}
        self.freqs = freqs
        rc_idx = np.array([self.index[rc(oh)] for oh in self.overhangs])
        self.correct = freqs[np.arange(n), rc_idx]
        self.correct.setflags(write=False)
        self.row_totals = freqs.sum(axis=1)
        self.row_totals.setflags(write=False)

    @classmethod
    def fromMapping(cls, mapping):
        """Build a matrix from a two-level ``{oh: {oh: count}}`` mapping.

        Missing inner keys are treated as zero counts.

        Raises:
            ``ValueError`` for empty input, mixed overhang lengths, non-ACGT
            keys or negative / non-numeric counts

        """
        if not isinstance(mapping, dict):
            raise ValueError('Ligation matrix must be a mapping, not %s' %
                             type(mapping).__name__)
        if not mapping:
            raise ValueError('Ligation matrix mapping is empty')
        keys = set(mapping)
        for oh1, row in mapping.items():
            if not isinstance(row, dict):
                raise ValueError('Ligation matrix row for %r must be a '
                                 'mapping, not %s' %
                                 (oh1, type(row).__name__))
            keys.update(row)
        for key in keys:
            if not isinstance(key, str):
                raise ValueError('Invalid overhang key in ligation matrix: '
                                 '%r' % (key,))
        lengths = set(len(k) for k in keys)
        if len(lengths) != 1:
            raise ValueError('Ligation matrix mixes overhang lengths: %s' %
                             sorted(lengths))
        overhang_length = lengths.pop()
        for key in keys:
            if not isValidOverhang(key.upper()):
                raise ValueError('Invalid overhang key in ligation matrix: '
                                 '%r' % key)
        n = 4 ** overhang_length
        index = {oh: i for i, oh in enumerate(allOverhangs(overhang_length))}
        freqs = np.zeros((n, n), dtype=np.float64)
        for oh1, row in mapping.items():
            i = index[oh1.upper()]
            for oh2, count in row.items():
                try:
                    count = float(count)
                except (TypeError, ValueError):
                    raise ValueError('Non-numeric ligation count for %s/%s: '
                                     '%r' % (oh1, oh2, count))
                if count < 0:
                    raise ValueError('Negative ligation count for %s/%s' %
                                     (oh1, oh2))
                freqs[i, index[oh2.upper()]] = count
        return cls(overhang_length, freqs)

    def __contains__(self, overhang):
        return overhang in self.index

    def frequency(self, oh1, oh2):
        """Observed ligation count of ``oh1`` with ``oh2`` (0.0 if unknown)."""
        i = self.index.get(oh1)
        j = self.index.get(oh2)
        if i is None or j is None:
            return 0.0
        return float(self.freqs[i, j])

    def correctFrequency(self, overhang):
        i = self.index.get(overhang)
        return 0.0 if i is None else float(self.correct[i])

    def rowTotal(self, overhang):
        i = self.index.get(overhang)
        return 0.0 if i is None else float(self.row_totals[i])

    def hasData(self, overhang):
        """True if the correct (Watson-Crick) pairing was ever observed."""
        return self.correctFrequency(overhang) > 0

    def indices(self, overhangs):
        """Row indices for ``overhangs`` as a numpy integer array."""
        return np.array([self.index[oh] for oh in overhangs], dtype=np.intp)


class LigationData(object):
    """Read-only collection of ``LigationMatrix`` objects keyed by enzyme.

    Args:
        matrices (dict, optional)   : ``{data_key: LigationMatrix}``
        metadata (dict, optional)   : provenance information (source, doi)

    """

    def __init__(self, matrices=None, metadata=None):
        self._matrices = dict(matrices or {})
        self.metadata = dict(metadata or {})

    @classmethod
    def fromMapping(cls, data):
        """Build from the published layout::

            {"metadata": {...},
             "enzymes": {"BsaI-HFv2": {"matrix": {"AAAA": {"TTTT": 512}}}}}

        Raises:
            ``ValueError`` if an enzyme entry has no ``matrix``

        """
        matrices = {}
        for key, entry in data.get('enzymes', {}).items():
            if 'matrix' not in entry:
                raise ValueError('Ligation data for %s has no matrix' % key)
            matrices[key] = LigationMatrix.fromMapping(entry['matrix'])
        return cls(matrices, data.get('metadata'))

    def __contains__(self, data_key):
        return data_key in self._matrices

    def keys(self):
        return sorted(self._matrices)

    def matrixFor(self, enzyme):
        """Return the matrix for ``enzyme`` or ``None`` if it has no data.

        Raises:
            ``ValueError`` for an unknown enzyme or a matrix whose overhang
            length disagrees with the enzyme

        """
        enzyme = getEnzyme(enzyme)
        matrix = self._matrices.get(enzyme.data_key)
        if matrix is not None and \
                matrix.overhang_length != enzyme.overhang_length:
            raise ValueError('Ligation matrix for %s has %d nt overhangs, '
                             'expected %d' % (enzyme.data_key,
                             matrix.overhang_length, enzyme.overhang_length))
        return matrix


def getMatrix(ligation_data, enzyme):
    """Matrix for ``enzyme`` from ``ligation_data`` (which may be ``None``)."""
    if ligation_data is None:
        getEnzyme(enzyme)
        return None
    return ligation_data.matrixFor(enzyme)


# ~~~~~~~~~~~~~~~~~~~~~~~~~~~ Caller-side loading ~~~~~~~~~~~~~~~~~~~~~~~~~~~ #

def sha256fn(string):
    """Generate a filename-friendly sha256 hash of the provided string."""
    raw_hash = hashlib.sha256()
    if isinstance(string, str):
        raw_hash.update(string.encode('utf-8'))
    else:
        raw_hash.update(string)
    return raw_hash.hexdigest()


def getCachedNumpyArray(cache_dir, hash_str):
    """Load a cached numpy array using a sha256 hash of the provided string.

    Returns:
        Numpy array object if the cached array is successfully loaded,
        otherwise, ``None``.
    """
    cached_fp = os.path.join(cache_dir, sha256fn(hash_str) + '.npy')
    np_arr = None
    if os.path.isfile(cached_fp):
        try:
            np_arr = np.load(cached_fp)
        except (OSError, ValueError):
            logger.warning('Ignoring unreadable cache file %s', cached_fp)
    return np_arr


def saveNumpyArrayToCache(np_arr, cache_dir, hash_str):
    """Save a numpy array to disk using a sha256 hash of the provided string.

    Raises:
        ``OSError`` if ``cache_dir`` does not exist
    """
    if not os.path.isdir(cache_dir):
        raise OSError('%s does not exist or is not a valid path' % cache_dir)
    cached_fp = os.path.join(cache_dir, sha256fn(hash_str) + '.npy')
    np.save(cached_fp, np_arr)


def loadLigationData(fp, cache_dir=None):
    """Load ligation frequency data from a JSON file.

    Dense matrices are optionally cached as ``.npy`` files keyed by the file
    path, its modification time and the enzyme data key, so repeated loads
    skip the JSON-to-array conversion.

    Args:
        fp (str)                    : filepath to the ligation data JSON
        cache_dir (str, optional)   : if not ``None``, the directory where
                                      cached matrices will be saved

    Returns:
        ``LigationData``

    Raises:
        ``OSError``, ``ValueError``

    """
    with open(fp) as fd:
        data = json.load(fd)
    if cache_dir is not None:
        try:
            os.makedirs(cache_dir)
        except FileExistsError:
            pass
    mtime = str(os.path.getmtime(fp))
    matrices = {}
    for key, entry in data.get('enzymes', {}).items():
        if 'matrix' not in entry:
            raise ValueError('Ligation data for %s has no matrix' % key)
        matrix = None
        if cache_dir is not None:
            cache_str = fp + mtime + key + 'ligationMatrix'
            arr = getCachedNumpyArray(cache_dir, cache_str)
            if arr is not None:
                overhang_length = int(round(np.log2(arr.shape[0]) / 2))
                matrix = LigationMatrix(overhang_length, arr)
        if matrix is None:
            matrix = LigationMatrix.fromMapping(entry['matrix'])
            if cache_dir is not None:
                saveNumpyArrayToCache(matrix.freqs, cache_dir, cache_str)
        logger.info('Loaded ligation matrix %s (%d nt overhangs)', key,
                    matrix.overhang_length)
        matrices[key] = matrix
    return LigationData(matrices, data.get('metadata'))
